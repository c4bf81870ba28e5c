"""WCRP (Weighted Chinese Restaurant Process) skill discovery with BKT skills."""

from .config import WCRPConfig, TOL, HYPER_AP1, HYPER_AP2
from .random_source import RandomSource
from .parameters import BKTParameters, BKTParam, draw_bkt_param_prior
from .tables import TableStore, SkillRecord, UNASSIGNED
from .seating import NO_SKILL, compute_K, log_seating_prob
from .slice_sampler import slice_sample
from .recorder import SampleRecorder, Sample
from .sampler import MixtureWCRP, IterationStats, WCRPParam
from .data_loader import load_dataset, load_splits, WCRPDataset
from .student_split import make_fold_assignments, save_splits, iter_train_test_splits
from .evaluator import compute_metrics, evaluate_predictions, summarize_folds, Metrics

__all__ = [
    "WCRPConfig",
    "TOL",
    "HYPER_AP1",
    "HYPER_AP2",
    "RandomSource",
    "BKTParameters",
    "BKTParam",
    "draw_bkt_param_prior",
    "TableStore",
    "SkillRecord",
    "UNASSIGNED",
    "NO_SKILL",
    "compute_K",
    "log_seating_prob",
    "slice_sample",
    "SampleRecorder",
    "Sample",
    "MixtureWCRP",
    "IterationStats",
    "WCRPParam",
    "load_dataset",
    "load_splits",
    "WCRPDataset",
    "make_fold_assignments",
    "save_splits",
    "iter_train_test_splits",
    "compute_metrics",
    "evaluate_predictions",
    "summarize_folds",
    "Metrics",
]
