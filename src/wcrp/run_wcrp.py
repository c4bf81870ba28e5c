#!/usr/bin/env python3
"""Skill discovery with the WCRP + BKT sampler.

Runs one Markov chain per (replication, fold) and writes either the
posterior mean recall prediction of every trial or, with --dump_skills,
the sampled and most likely skill labels of every item.

Run with: wcrp-run --datafile data.txt --outfile results/preds.tsv --foldfile folds.txt
"""

from __future__ import annotations

import argparse
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

import numpy as np
import pandas as pd
from tqdm import tqdm

from .config import WCRPConfig
from .data_loader import load_dataset, load_splits
from .evaluator import evaluate_predictions, metrics_row, summarize_folds
from .plotting import plot_trace
from .random_source import RandomSource
from .sampler import MixtureWCRP
from .student_split import iter_train_test_splits, make_fold_assignments
from .writer import (
    collect_predictions,
    write_history,
    write_map_labels,
    write_predictions,
    write_sampled_labels,
)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Infer item skill labels with a WCRP mixture of BKT skills")
    parser.add_argument("--datafile", type=Path, required=True, help="train the model on the given data file")
    parser.add_argument("--outfile", type=Path, required=True, help="put results in this file")
    parser.add_argument("--foldfile", type=Path, default=None, help="file with the training / test splits")
    parser.add_argument("--init_beta", type=float, default=0.0, help="initial value of beta")
    parser.add_argument("--fixed_alpha_prime", type=float, default=None, help="fixed value of alpha'")
    parser.add_argument("--infer_beta", action="store_true", help="infer the value of beta")
    parser.add_argument("--num_iterations", type=int, default=200, help="number of iterations to run")
    parser.add_argument("--burn", type=int, default=100, help="number of iterations to discard")
    parser.add_argument(
        "--num_subsamples",
        type=int,
        default=2000,
        help="number of samples to use when approximating marginal likelihood of new tables",
    )
    parser.add_argument("--dump_skills", action="store_true", help="save the skill assignments too")
    parser.add_argument("--num_folds", type=int, default=1, help="folds to generate when no foldfile is given")
    parser.add_argument("--num_replications", type=int, default=1, help="replications to generate when no foldfile is given")
    parser.add_argument("--seed", type=int, default=None, help="random seed")
    parser.add_argument("--plot", action="store_true", help="save a trace plot per chain")
    parser.add_argument("--quiet", action="store_true", help="do not print a status row per iteration")
    return parser


def config_from_args(args: argparse.Namespace) -> WCRPConfig:
    config = WCRPConfig(
        data_path=args.datafile,
        fold_path=args.foldfile,
        output_path=args.outfile,
        init_beta=args.init_beta,
        fixed_alpha_prime=args.fixed_alpha_prime,
        infer_beta=args.infer_beta,
        num_iterations=args.num_iterations,
        burn=args.burn,
        num_subsamples=args.num_subsamples,
        random_seed=args.seed,
        num_folds=args.num_folds,
        num_replications=args.num_replications,
        dump_skills=args.dump_skills,
        plot_traces=args.plot,
    )
    config.validate()
    return config


def _chain_path(output_path: Path, replication: int, fold: int, suffix: str) -> Path:
    return output_path.with_name(f"{output_path.stem}_rep{replication}_fold{fold}_{suffix}")


def run(config: WCRPConfig, verbose: bool = True) -> pd.DataFrame:
    """Run every (replication, fold) chain and write its output.

    Returns:
        DataFrame of held-out metrics, one row per chain that has test students.
    """
    print("\nLoading dataset...")
    dataset = load_dataset(config.data_path)
    print(
        f"  dataset has {dataset.num_students} students, {dataset.num_items} items, "
        f"and {dataset.num_skills} expert-provided skills"
    )

    if config.fold_path is not None:
        fold_nums, num_folds = load_splits(config.fold_path, dataset.num_students)
    else:
        num_folds = config.num_folds
        fold_nums = make_fold_assignments(
            dataset.num_students,
            num_folds,
            config.num_replications,
            seed=config.random_seed if config.random_seed is not None else 42,
        )
    print(f"  # replications to run = {len(fold_nums)}")
    print(f"  # folds per replication = {num_folds}")

    if config.infer_alpha_prime:
        print("  the code will automatically infer the value of alpha'")
    else:
        print(f"  the code will keep alpha' fixed at {config.fixed_alpha_prime}")
    if config.infer_beta:
        print("  the code will automatically infer the value of beta")
    else:
        print(f"  the code will keep beta fixed at {config.init_beta}")

    # one independent stream per chain
    seeds = np.random.SeedSequence(config.random_seed).spawn(len(fold_nums) * num_folds)

    fold_results: List[Dict[str, Any]] = []
    output_path = Path(config.output_path)
    first_write = True

    splits = list(iter_train_test_splits(fold_nums, num_folds))
    for chain_idx, (replication, fold, train_students, test_students) in enumerate(
        tqdm(splits, desc="Chains", disable=not verbose)
    ):
        model = MixtureWCRP(
            RandomSource(seeds[chain_idx]),
            train_students,
            test_students,
            dataset.recall_sequences,
            dataset.item_sequences,
            dataset.provided_skill_assignments,
            config.init_beta,
            config.fixed_alpha_prime,
            dataset.num_students,
            dataset.num_items,
            config.num_subsamples,
            verbose=verbose,
        )
        model.run(config.num_iterations, config.burn, config.infer_beta, config.infer_alpha_prime)

        if config.dump_skills:
            write_map_labels(_chain_path(output_path, replication, fold, "map.tsv"), model.most_likely_skill_labels())
            write_sampled_labels(
                _chain_path(output_path, replication, fold, "samples.tsv"), model.sampled_skill_labels()
            )
        else:
            predictions = collect_predictions(model, replication, fold)
            write_predictions(output_path, predictions, append=not first_write)
            first_write = False
            if test_students:
                metrics = evaluate_predictions(predictions, config.threshold)
                fold_results.append(
                    metrics_row(
                        metrics,
                        replication=replication,
                        fold=fold,
                        num_skills=model.num_used_skills,
                        beta=model.beta,
                        alpha_prime=model.alpha_prime,
                    )
                )

        if config.plot_traces:
            write_history(_chain_path(output_path, replication, fold, "trace.tsv"), model.history)
            plot_trace(
                model.history,
                _chain_path(output_path, replication, fold, "trace.png"),
                f" (replication {replication}, fold {fold})",
                burn=config.burn,
            )

    results_df = pd.DataFrame(fold_results)
    if fold_results:
        metrics_path = output_path.with_name(f"{output_path.stem}_fold_metrics.tsv")
        results_df.to_csv(metrics_path, sep="\t", index=False)
        summary = summarize_folds(fold_results)
        auc_str = f"{summary['auc']:.4f}" if summary["auc"] is not None else "N/A"
        auc_std_str = f"{summary['auc_std']:.4f}" if summary["auc_std"] is not None else "N/A"
        ce_str = f"{summary['cross_entropy']:.4f}" if summary["cross_entropy"] is not None else "N/A"
        print(f"\n  Held-out AUC: {auc_str} +- {auc_std_str}")
        print(f"  Held-out cross entropy: {ce_str}")

    return results_df


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    config = config_from_args(args)

    print("=" * 70)
    print(" WCRP Skill Discovery")
    print("=" * 70)

    run(config, verbose=not args.quiet)

    print(f"\nOutput: {config.output_path}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
