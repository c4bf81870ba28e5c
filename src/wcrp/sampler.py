"""MCMC sampler for WCRP skill discovery with per-skill BKT.

Items are customers and skills are tables of a Weighted Chinese
Restaurant Process whose seating is biased toward expert-provided skill
labels. Each table carries BKT parameters that explain the responses of
students on the items seated there.

One sweep of the sampler resamples, in order:
1. the WCRP hyperparameters log(alpha') and log(gamma) by slice sampling
2. the four BKT parameters of every skill by slice sampling
3. the skill of every item by auxiliary-variable Gibbs sampling
   (algorithm 8 of Neal (2000), "Markov chain sampling methods for
   Dirichlet process mixture models")
"""

from __future__ import annotations

import math
import time
from dataclasses import dataclass
from enum import Enum
from typing import AbstractSet, Dict, List, Optional, Sequence, Tuple

import numpy as np
from tqdm import tqdm

from .config import (
    BKT_BRACKET_WIDTH,
    HYPER_AP1,
    HYPER_AP2,
    HYPER_BRACKET_WIDTH,
    LOG_ALPHA_PRIME_BOUNDS,
    LOG_GAMMA_BOUNDS,
    ONE_MINUS_TOL,
    TOL,
)
from .likelihood import (
    cache_p_hat,
    cached_skill_log_likelihood,
    forward_predictions,
    skill_log_likelihood,
    student_log_likelihood,
)
from .parameters import BKTParam, BKTParameters, draw_bkt_param_prior
from .random_source import RandomSource
from .recorder import SampleRecorder
from .seating import (
    NO_SKILL,
    LogGammaPrior,
    LogUniformPrior,
    compute_K,
    log_new_table_probability,
    log_old_table_probability,
    log_seating_prob,
)
from .slice_sampler import slice_sample
from .tables import TableStore


@dataclass
class IterationStats:
    """Diagnostics of one completed sweep."""

    iteration: int
    seconds: float
    beta: float
    alpha_prime: float
    num_skills: int
    train_ll: float
    cross_entropy: float
    test_ll: float


class WCRPParam(Enum):
    """The two WCRP hyperparameters, both sampled on the log scale."""

    LOG_ALPHA_PRIME = "log_alpha_prime"
    LOG_GAMMA = "log_gamma"

    def get(self, model: MixtureWCRP) -> float:
        return getattr(model, self.value)

    def set(self, model: MixtureWCRP, value: float) -> None:
        setattr(model, self.value, value)


class MixtureWCRP:
    """WCRP mixture of BKT skills.

    Args:
        generator: Random source shared by every sampling step of this chain.
        train_students: Students whose responses drive inference.
        test_students: Held-out students. Defaults to every student not in
            train_students.
        recall_sequences: recall_sequences[student][trial] = response was correct.
        item_sequences: item_sequences[student][trial] = item studied.
        provided_skill_assignments: Expert skill label of each item, or NO_SKILL.
        beta: How deterministically expert labels are followed, in [0, 1].
            beta = 1 keeps the expert partition fixed.
        init_alpha_prime: Fixed value of alpha', or None to draw it from its prior.
        num_students: Number of students.
        num_items: Number of items.
        num_subsamples: Number of prior draws used to approximate the
            marginal likelihood of a new skill.
        verbose: Print a status row after every sweep.
    """

    def __init__(
        self,
        generator: RandomSource,
        train_students: AbstractSet[int],
        test_students: Optional[AbstractSet[int]],
        recall_sequences: Sequence[Sequence[bool]],
        item_sequences: Sequence[Sequence[int]],
        provided_skill_assignments: Sequence[int],
        beta: float,
        init_alpha_prime: Optional[float],
        num_students: int,
        num_items: int,
        num_subsamples: int,
        verbose: bool = True,
    ):
        if not train_students:
            raise ValueError("The training set is empty")
        if not 0.0 <= beta <= 1.0:
            raise ValueError(f"beta must lie in [0, 1], got {beta}")
        if init_alpha_prime is not None and init_alpha_prime <= 0.0:
            raise ValueError(f"alpha' must be positive, got {init_alpha_prime}")
        if num_students < 1 or num_items < 1:
            raise ValueError("Need at least one student and one item")
        if num_subsamples < 1:
            raise ValueError(f"num_subsamples must be at least 1, got {num_subsamples}")
        if len(recall_sequences) != num_students or len(item_sequences) != num_students:
            raise ValueError("Need one recall sequence and one item sequence per student")
        if len(provided_skill_assignments) != num_items:
            raise ValueError("Need one expert skill label per item")
        if any(label < NO_SKILL for label in provided_skill_assignments):
            raise ValueError("Expert skill labels must be non-negative or NO_SKILL")
        if not all(0 <= s < num_students for s in train_students):
            raise ValueError("Training student id out of range")

        if test_students is None:
            test_students = set(range(num_students)) - set(train_students)
        if not set(train_students).isdisjoint(test_students):
            raise ValueError("Training and test students overlap")

        self.generator = generator
        self.train_students = frozenset(train_students)
        self.test_students = frozenset(test_students)
        self.recall_sequences = [[bool(r) for r in seq] for seq in recall_sequences]
        self.item_sequences = [[int(i) for i in seq] for seq in item_sequences]
        self.provided_skill_assignments = [int(label) for label in provided_skill_assignments]
        self.num_students = num_students
        self.num_items = num_items
        self.num_subsamples = num_subsamples
        self.verbose = verbose

        # beta within TOL of one means the expert labels are used as is
        self.use_expert_labels = abs(1.0 - beta) <= TOL
        # for legacy reasons gamma = 1 - beta and inference runs on log(gamma)
        self.log_gamma = math.log(1.0 - beta) if beta < 1.0 else -math.inf
        self.num_expert_provided_skills = max(1, 1 + max(self.provided_skill_assignments))

        self._precompute_dataset_lookups()

        if init_alpha_prime is None:
            self.log_alpha_prime = math.log(generator.gamma(HYPER_AP1, HYPER_AP2))
        else:
            self.log_alpha_prime = math.log(init_alpha_prime)

        self.store = TableStore(generator, num_items, self.students_who_studied, self.trials_studied)
        self._seat_expert_labels()

        num_missing = sum(1 for firsts in self.all_first_encounters if not firsts)
        if num_missing > 0:
            print(f"  Warning: {num_missing} of {num_items} items have no training data")

        self.prior_samples: List[BKTParameters] = []
        self.singleton_skill_data_lp = np.zeros((num_items, 0))
        if not self.use_expert_labels:
            self._precompute_singleton_likelihoods()

        self._item_order = list(range(num_items))
        self.recorder = SampleRecorder([len(seq) for seq in self.item_sequences])
        self.history: List[IterationStats] = []

    # ------------------------------------------------------------------
    # Construction
    # ------------------------------------------------------------------
    def _precompute_dataset_lookups(self) -> None:
        """Index trials by student and item to avoid rescanning sequences."""
        # first_encounter[student][item] = first trial the student studied the item
        self.first_encounter: List[Dict[int, int]] = []
        # trials_studied[student][item] = every trial the student studied the item
        self.trials_studied: List[Dict[int, List[int]]] = []

        for student in range(self.num_students):
            recalls = self.recall_sequences[student]
            items = self.item_sequences[student]
            if len(recalls) != len(items):
                raise ValueError(f"Student {student} has mismatched recall and item sequences")
            first: Dict[int, int] = {}
            studied: Dict[int, List[int]] = {}
            for trial, item in enumerate(items):
                if not 0 <= item < self.num_items:
                    raise ValueError(f"Student {student} trial {trial}: item {item} out of range")
                first.setdefault(item, trial)
                studied.setdefault(item, []).append(trial)
            self.first_encounter.append(first)
            self.trials_studied.append(studied)

        # training students only
        self.students_who_studied: List[List[int]] = [[] for _ in range(self.num_items)]
        self.all_first_encounters: List[List[int]] = [[] for _ in range(self.num_items)]
        for student in sorted(self.train_students):
            for item, trial in sorted(self.first_encounter[student].items()):
                self.students_who_studied[item].append(student)
                self.all_first_encounters[item].append(trial)

    def _seat_expert_labels(self) -> None:
        """Initialize the seating arrangement to the expert-provided skills."""
        for item, label in enumerate(self.provided_skill_assignments):
            if label == NO_SKILL:
                continue
            table_id = 1 + label
            self.store.assign(item, table_id, table_id not in self.store)
        # TODO: confirm whether the extra id reserved past the expert skills is needed
        self.store.reserve_ids(self.num_expert_provided_skills + 1)

        for item, label in enumerate(self.provided_skill_assignments):
            if label == NO_SKILL:
                self.store.assign(item, self.store.new_table_id(), True)

    def _precompute_singleton_likelihoods(self) -> None:
        """Log likelihood of every item as a singleton skill under each prior draw."""
        self.prior_samples = [draw_bkt_param_prior(self.generator) for _ in range(self.num_subsamples)]
        self.singleton_skill_data_lp = np.zeros((self.num_items, self.num_subsamples))

        for item in range(self.num_items):
            affected_students = self.students_who_studied[item]
            first_exposures = self.all_first_encounters[item]
            cur_table_id = self.store.seating_arrangement[item]
            cur_params = self.store.params(cur_table_id)

            deleted_table = self.store.remove(item, cur_table_id)

            tmp_table_id = self.store.new_table_id()
            self.store.assign(item, tmp_table_id, True, params=self.prior_samples[0])
            record = self.store.record(tmp_table_id)
            for subsample, params in enumerate(self.prior_samples):
                record.params = params
                self.singleton_skill_data_lp[item, subsample] = skill_log_likelihood(
                    self.store, tmp_table_id, affected_students, first_exposures, self.recall_sequences
                )
            self.store.remove(item, tmp_table_id)

            if deleted_table:
                self.store.assign(item, self.store.new_table_id(), True, params=cur_params)
            else:
                self.store.assign(item, cur_table_id, False)

    # ------------------------------------------------------------------
    # Public queries
    # ------------------------------------------------------------------
    @property
    def seating_arrangement(self) -> List[int]:
        return list(self.store.seating_arrangement)

    @property
    def num_used_skills(self) -> int:
        return self.store.num_used_skills

    @property
    def beta(self) -> float:
        return 1.0 - math.exp(self.log_gamma)

    @property
    def alpha_prime(self) -> float:
        return math.exp(self.log_alpha_prime)

    def estimated_recall_probability(self, student: int, trial: int) -> float:
        """Expected posterior probability that the student responds correctly on the trial."""
        return self.recorder.estimated_recall_probability(student, trial)

    def sampled_skill_labels(self) -> List[List[int]]:
        """Skill label of every item in every sample; labels are sample-specific."""
        return self.recorder.sampled_skill_labels()

    def most_likely_skill_labels(self) -> List[int]:
        """Skill labels of the sample that maximized the training log likelihood."""
        return self.recorder.most_likely_skill_labels()

    def check_invariants(self) -> None:
        self.store.check_invariants()
        assert self.store.num_used_skills == len(self.store.table_sizes())

    # ------------------------------------------------------------------
    # Likelihoods
    # ------------------------------------------------------------------
    def log_seating_prob(self) -> float:
        return log_seating_prob(
            self.store.seating_arrangement,
            self.provided_skill_assignments,
            self.log_alpha_prime,
            self.log_gamma,
            self.num_expert_provided_skills,
        )

    def full_data_log_likelihood(self, is_training: bool) -> Tuple[float, int]:
        """log Pr(responses of the training or test students | chain state).

        Returns the log likelihood and the number of trials included.
        """
        students = self.train_students if is_training else self.test_students
        ll = 0.0
        trials_included = 0
        for student in sorted(students):
            student_ll, num_trials = student_log_likelihood(
                self.store, student, 0, self.recall_sequences, self.item_sequences
            )
            ll += student_ll
            trials_included += num_trials
        return ll, trials_included

    def _students_of_skill(self, table_id: int) -> Tuple[List[int], List[int]]:
        """Training students who studied any item of the skill, with their first exposure."""
        items = self.store.items_at(table_id)
        students: List[int] = []
        first_exposures: List[int] = []
        for student in sorted(self.train_students):
            first = self.first_encounter[student]
            exposures = [first[item] for item in items if item in first]
            if exposures:
                students.append(student)
                first_exposures.append(min(exposures))
        return students, first_exposures

    # ------------------------------------------------------------------
    # Slice sampling updates
    # ------------------------------------------------------------------
    def slice_resample_bkt_parameter(
        self,
        table_id: int,
        param: BKTParam,
        students: Sequence[int],
        first_exposures: Sequence[int],
        cur_ll: float,
    ) -> float:
        """Resample one BKT parameter of a skill under a uniform prior.

        Returns the skill log likelihood at the new value.
        """
        params = self.store.params(table_id)

        def log_density(value: float) -> float:
            param.set(params, value)
            return skill_log_likelihood(
                self.store, table_id, students, first_exposures, self.recall_sequences
            )

        new_value, new_ll = slice_sample(
            self.generator,
            param.get(params),
            cur_ll,
            log_density,
            TOL,
            ONE_MINUS_TOL,
            BKT_BRACKET_WIDTH,
        )
        param.set(params, new_value)
        return new_ll

    def slice_resample_wcrp_param(
        self,
        param: WCRPParam,
        cur_seating_lp: float,
        lower_bound: float,
        upper_bound: float,
        bracket_width: float,
        prior_lp,
    ) -> float:
        """Resample one WCRP hyperparameter.

        The target is the seating log probability plus prior_lp, a
        callable giving the prior log density of the hyperparameter.
        Returns the seating log probability at the new value.
        """
        cur_val = param.get(self)
        clamped = min(max(cur_val, lower_bound), upper_bound)
        if clamped != cur_val:
            param.set(self, clamped)
            cur_val = clamped
            cur_seating_lp = self.log_seating_prob()

        def log_density(value: float) -> float:
            param.set(self, value)
            return self.log_seating_prob() + prior_lp(value)

        new_value, new_lp = slice_sample(
            self.generator,
            cur_val,
            cur_seating_lp + prior_lp(cur_val),
            log_density,
            lower_bound,
            upper_bound,
            bracket_width,
        )
        param.set(self, new_value)
        return new_lp - prior_lp(new_value)

    def _resample_skill_parameters(self, table_id: int) -> None:
        students, first_exposures = self._students_of_skill(table_id)
        param_order = list(BKTParam)
        self.generator.shuffle(param_order)
        cur_ll = skill_log_likelihood(
            self.store, table_id, students, first_exposures, self.recall_sequences
        )
        for param in param_order:
            cur_ll = self.slice_resample_bkt_parameter(table_id, param, students, first_exposures, cur_ll)

    # ------------------------------------------------------------------
    # Gibbs update of the skill assignments
    # ------------------------------------------------------------------
    def gibbs_resample_skill(self, item: int) -> int:
        """Resample the table of one item given every other item.

        Returns the id of the table the item now sits at.
        """
        store = self.store
        affected_students = self.students_who_studied[item]
        first_exposures = self.all_first_encounters[item]

        store.remove(item, store.seating_arrangement[item])

        # each affected student's belief in every skill right before first seeing the item
        p_hat = [
            cache_p_hat(store, student, first, self.recall_sequences, self.item_sequences)
            for student, first in zip(affected_students, first_exposures)
        ]

        keys = store.extant_tables
        log_weights = np.empty(len(keys) + self.num_subsamples)
        for idx, table_id in enumerate(keys):
            store.assign(item, table_id, False)
            data_lp_with_item = cached_skill_log_likelihood(
                store, table_id, affected_students, first_exposures, p_hat, self.recall_sequences
            )
            store.remove(item, table_id)
            data_lp_without_item = cached_skill_log_likelihood(
                store, table_id, affected_students, first_exposures, p_hat, self.recall_sequences
            )

            K = compute_K(
                item,
                table_id,
                False,
                store.seating_arrangement,
                self.provided_skill_assignments,
                self.log_gamma,
                self.num_expert_provided_skills,
            )
            seating_lp = log_old_table_probability(
                store.size(table_id), K, self.log_gamma, self.num_expert_provided_skills
            )
            log_weights[idx] = seating_lp + data_lp_with_item - data_lp_without_item

        # the new-table mass is split evenly across the auxiliary prior draws
        new_seating_lp = log_new_table_probability(
            self.log_alpha_prime, self.log_gamma, self.num_expert_provided_skills
        ) - math.log(self.num_subsamples)
        log_weights[len(keys):] = new_seating_lp + self.singleton_skill_data_lp[item]

        drawn_event = self.generator.unnormalized_log_discrete(log_weights)
        if drawn_event >= len(keys):
            chosen_subsample = drawn_event - len(keys)
            table_id = store.new_table_id()
            store.assign(item, table_id, True, params=self.prior_samples[chosen_subsample].copy())
        else:
            table_id = keys[drawn_event]
            store.assign(item, table_id, False)
        return table_id

    # ------------------------------------------------------------------
    # Driver
    # ------------------------------------------------------------------
    def run(
        self,
        num_iterations: int,
        burn: int,
        infer_beta: bool,
        infer_alpha_prime: bool,
    ) -> List[IterationStats]:
        """Run num_iterations sweeps, recording a sample after each of the
        first burn sweeps has been discarded.
        """
        if burn < 0 or num_iterations <= burn:
            raise ValueError(f"num_iterations ({num_iterations}) must exceed burn ({burn})")

        resample_alpha_prime = infer_alpha_prime and not self.use_expert_labels
        # beta exactly 1 has no finite log gamma; just below 1 gamma still moves with a fixed partition
        resample_gamma = infer_beta and math.isfinite(self.log_gamma)
        alpha_prime_prior = LogGammaPrior(HYPER_AP1, HYPER_AP2)
        gamma_prior = LogUniformPrior()

        iterator = tqdm(range(num_iterations), desc="WCRP sweeps", disable=not self.verbose, leave=False)
        for iteration in iterator:
            begin = time.perf_counter()

            # WCRP hyperparameters
            if resample_alpha_prime or resample_gamma:
                cur_seating_lp = self.log_seating_prob()
                if resample_alpha_prime:
                    cur_seating_lp = self.slice_resample_wcrp_param(
                        WCRPParam.LOG_ALPHA_PRIME,
                        cur_seating_lp,
                        *LOG_ALPHA_PRIME_BOUNDS,
                        HYPER_BRACKET_WIDTH,
                        alpha_prime_prior,
                    )
                if resample_gamma:
                    cur_seating_lp = self.slice_resample_wcrp_param(
                        WCRPParam.LOG_GAMMA,
                        cur_seating_lp,
                        *LOG_GAMMA_BOUNDS,
                        HYPER_BRACKET_WIDTH,
                        gamma_prior,
                    )

            # BKT parameters of every skill
            for table_id in self.store.extant_tables:
                self._resample_skill_parameters(table_id)

            # skill assignments
            if not self.use_expert_labels:
                self.generator.shuffle(self._item_order)
                for item in self._item_order:
                    self.gibbs_resample_skill(item)

            elapsed = time.perf_counter() - begin
            stats = self._sweep_stats(iteration + 1, elapsed)
            self.history.append(stats)
            self._report(stats)

            if iteration >= burn:
                self.record_sample(stats.train_ll)

        return self.history

    def _sweep_stats(self, iteration: int, seconds: float) -> IterationStats:
        train_ll, train_n = self.full_data_log_likelihood(True)
        test_ll, _ = self.full_data_log_likelihood(False)
        return IterationStats(
            iteration=iteration,
            seconds=seconds,
            beta=self.beta,
            alpha_prime=self.alpha_prime,
            num_skills=self.store.num_used_skills,
            train_ll=train_ll,
            cross_entropy=(-train_ll / train_n) if train_n > 0 else float("nan"),
            test_ll=test_ll,
        )

    def _report(self, stats: IterationStats) -> None:
        if not self.verbose:
            return
        if stats.iteration == 1:
            tqdm.write("iter\tsec.\tbeta\tnskills\tdata_ll\tcross_entropy")
        tqdm.write(
            f"{stats.iteration}\t{stats.seconds:.2f}\t{stats.beta:.4f}\t{stats.num_skills}"
            f"\t{stats.train_ll:.0f}\t{stats.cross_entropy:.4f}"
        )

    def record_sample(self, train_ll: float) -> None:
        """Record skill labels, training log likelihood and every trial's prediction."""
        predictions = [
            forward_predictions(self.store, student, self.recall_sequences, self.item_sequences)
            for student in range(self.num_students)
        ]
        self.recorder.record(self.store.seating_arrangement, train_ll, predictions)
