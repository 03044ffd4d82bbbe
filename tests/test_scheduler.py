"""
Tests for the partitioned phase scheduler.

The scheduler is driven against a scripted engine (see conftest.py) so that
phase ordering, activation, stopping limits, the save grid and failure
handling can be checked exactly.
"""

import logging

import pytest

from partitioned_cht.core.config import CouplingConfig, StoppingCriteriaConfig
from partitioned_cht.core.exceptions import (
    ActivationError,
    CheckpointError,
    SolverInvocationError,
)
from partitioned_cht.coupling import (
    CheckpointManager,
    DiagnosticsReporter,
    DomainRegistry,
    PhaseScheduler,
    StoppingCriteriaController,
)


def build_scheduler(engine, config, output_folder, diagnostics=None, retries=0):
    domains = DomainRegistry(engine).resolve_domains("Fluid_Volume", ["S_Die", "S_Plate"])
    criteria = StoppingCriteriaController.resolve(engine, StoppingCriteriaConfig())
    checkpoints = CheckpointManager(
        engine,
        output_folder=str(output_folder),
        save_interval=config.save_interval,
        case_name="case",
        retries=retries,
    )
    return PhaseScheduler(engine, config, domains, criteria, checkpoints, diagnostics)


def fluid_runs(engine):
    return [r for r in engine.runs if r["fluid_active"]]


def solid_runs(engine):
    return [r for r in engine.runs if not r["fluid_active"]]


# =============================================================================
# Reference scenarios
# =============================================================================


class TestReferenceScenario:
    """T_end=1.0, dt_s=0.2, K=2, N_fast=30, save_interval=0.5, from t=0."""

    @pytest.fixture
    def result(self, fake_engine, scenario_config, tmp_path):
        scheduler = build_scheduler(fake_engine, scenario_config, tmp_path)
        return scheduler, scheduler.run()

    def test_three_major_steps(self, result):
        _, summary = result
        assert summary.major_steps == 3
        assert summary.final_time == pytest.approx(1.0)
        assert summary.initial_time == 0.0

    def test_counters(self, result):
        _, summary = result
        assert summary.total_solid_steps == 5
        assert summary.total_fluid_iterations == 150

    def test_last_major_step_runs_one_subcycle(self, fake_engine, result):
        assert len(fake_engine.runs) == 10
        # Last two invocations are the single subcycle of major step 3
        assert fake_engine.runs[-2]["fluid_active"]
        assert not fake_engine.runs[-1]["fluid_active"]
        assert fake_engine.runs[-1]["time_limit"] == pytest.approx(1.0)

    def test_solid_targets_follow_time_step(self, fake_engine, result):
        targets = [r["time_limit"] for r in solid_runs(fake_engine)]
        assert targets == pytest.approx([0.2, 0.4, 0.6, 0.8, 1.0])

    def test_checkpoints_after_crossing_and_at_end(self, fake_engine, result, tmp_path):
        _, summary = result
        names = [p.name for p in summary.checkpoints]
        assert names == ["case_t0.80.sim", "case_t1.00.sim"]
        assert all((tmp_path / n).exists() for n in names)
        assert len(fake_engine.snapshots) == 2

    def test_final_save_grid_position(self, result):
        scheduler, _ = result
        assert scheduler.time.next_save_time == pytest.approx(1.5)


def test_end_time_divisible_by_major_step(make_engine, tmp_path):
    """No extra empty major step when the last subcycle lands on T_end."""
    engine = make_engine()
    config = CouplingConfig(
        end_time=0.8, solid_time_step=0.2, fluid_iterations=10, subcycles=2, save_interval=1.0
    )
    summary = build_scheduler(engine, config, tmp_path).run()

    assert summary.major_steps == 2
    assert summary.total_solid_steps == 4
    assert summary.final_time == pytest.approx(0.8)
    # End time always triggers a save even before the first grid point
    assert [p.name for p in summary.checkpoints] == ["case_t0.80.sim"]


def test_solver_failure_aborts_run(make_engine, tmp_path):
    """A failure in major step 4 leaves counters at the completed phases."""
    engine = make_engine(fail_on_run=14)
    config = CouplingConfig(
        end_time=2.0, solid_time_step=0.2, fluid_iterations=30, subcycles=2, save_interval=0.5
    )
    scheduler = build_scheduler(engine, config, tmp_path)

    with pytest.raises(SolverInvocationError, match="major step 4") as excinfo:
        scheduler.run()

    assert isinstance(excinfo.value.__cause__, RuntimeError)
    assert scheduler.time.major_step == 4
    assert scheduler.progress.total_fluid_iterations == 7 * 30
    assert scheduler.progress.total_solid_steps == 6
    # Saves from major steps 2 and 3 only
    assert [p.name for p in scheduler.checkpoints.saved] == ["case_t0.80.sim", "case_t1.20.sim"]
    assert len(engine.runs) == 13


def test_no_major_step_when_already_at_end_time(make_engine, tmp_path):
    engine = make_engine(start_time=1.0)
    config = CouplingConfig(end_time=1.0, solid_time_step=0.2, fluid_iterations=5)
    summary = build_scheduler(engine, config, tmp_path).run()

    assert summary.major_steps == 0
    assert engine.runs == []
    assert summary.checkpoints == []


def test_large_end_time_does_not_skip_small_steps(make_engine, tmp_path):
    """The end-time tolerance never covers a whole solid step."""
    engine = make_engine(start_time=1e4 - 2e-6)
    config = CouplingConfig(
        end_time=1e4, solid_time_step=1e-6, fluid_iterations=5, save_interval=1.0
    )
    summary = build_scheduler(engine, config, tmp_path).run()

    assert summary.total_solid_steps == 2
    assert summary.final_time == pytest.approx(1e4, abs=1e-9)
    assert [p.name for p in summary.checkpoints] == ["case_t10000.00.sim"]


# =============================================================================
# Invariants
# =============================================================================


class TestInvariants:
    @pytest.fixture
    def config(self):
        return CouplingConfig(
            end_time=1.0, solid_time_step=0.2, fluid_iterations=25, subcycles=3, save_interval=0.3
        )

    def test_mutual_exclusion(self, make_engine, config, tmp_path):
        engine = make_engine()
        build_scheduler(engine, config, tmp_path).run()

        for run in engine.runs:
            if run["fluid_active"]:
                assert run["solids_active"] == []
            else:
                assert run["solids_active"] == ["S_Die", "S_Plate"]

    def test_alternation_starts_with_fluid(self, make_engine, config, tmp_path):
        engine = make_engine()
        build_scheduler(engine, config, tmp_path).run()

        kinds = ["F" if r["fluid_active"] else "S" for r in engine.runs]
        assert "".join(kinds) == "FS" * (len(kinds) // 2)

    def test_step_budget_accumulates(self, make_engine, config, tmp_path):
        engine = make_engine(max_steps=100)
        build_scheduler(engine, config, tmp_path).run()

        budgets = [r["step_limit"] for r in fluid_runs(engine)]
        assert budgets == [100 + 25 * (m + 1) for m in range(len(budgets))]
        assert engine.limits["Maximum Steps"][1] == 100 + 25 * len(budgets)

    def test_only_phase_limit_enabled(self, make_engine, config, tmp_path):
        engine = make_engine()
        build_scheduler(engine, config, tmp_path).run()

        for run in fluid_runs(engine):
            assert run["step_enabled"] and not run["time_enabled"]
        for run in solid_runs(engine):
            assert run["time_enabled"] and not run["step_enabled"]

    def test_time_is_monotonic(self, make_engine, config, tmp_path):
        engine = make_engine()
        build_scheduler(engine, config, tmp_path).run()

        times = [r["time_before"] for r in engine.runs] + [engine.time]
        assert times == sorted(times)

    def test_save_grid_is_not_reanchored(self, make_engine, tmp_path):
        engine = make_engine()
        config = CouplingConfig(
            end_time=1.0, solid_time_step=0.2, fluid_iterations=5, subcycles=1, save_interval=0.3
        )
        scheduler = build_scheduler(engine, config, tmp_path)
        summary = scheduler.run()

        # Grid 0.3, 0.6, 0.9, 1.2: crossed at t=0.4, 0.6 and 1.0
        assert [p.name for p in summary.checkpoints] == [
            "case_t0.40.sim",
            "case_t0.60.sim",
            "case_t1.00.sim",
        ]
        assert scheduler.time.next_save_time == pytest.approx(1.2)

    def test_early_termination_skips_remaining_subcycles(self, make_engine, tmp_path):
        engine = make_engine(time_offset=0.25)
        config = CouplingConfig(
            end_time=1.0, solid_time_step=0.2, fluid_iterations=5, subcycles=5, save_interval=5.0
        )
        summary = build_scheduler(engine, config, tmp_path).run()

        # Engine overshoots each target: 0.45, 0.9, 1.25
        assert summary.major_steps == 1
        assert summary.total_solid_steps == 3
        assert summary.total_fluid_iterations == 15
        assert summary.final_time == pytest.approx(1.25)

    def test_time_read_back_not_assumed(self, make_engine, tmp_path):
        engine = make_engine(time_offset=0.05)
        config = CouplingConfig(
            end_time=1.0, solid_time_step=0.2, fluid_iterations=5, subcycles=1, save_interval=5.0
        )
        build_scheduler(engine, config, tmp_path).run()

        # Each target builds on the overshooting read-back: 0.25, 0.5, 0.75, 1.0
        targets = [r["time_limit"] for r in solid_runs(engine)]
        assert targets == pytest.approx([0.2, 0.45, 0.7, 0.95])


# =============================================================================
# Failure handling
# =============================================================================


def test_stalled_time_is_fatal(make_engine, scenario_config, tmp_path):
    engine = make_engine(time_offset=-0.5)
    scheduler = build_scheduler(engine, scenario_config, tmp_path)

    with pytest.raises(SolverInvocationError, match="did not advance"):
        scheduler.run()
    assert scheduler.progress.total_solid_steps == 0
    assert scheduler.progress.total_fluid_iterations == 30


def test_checkpoint_failure_is_fatal(make_engine, scenario_config, tmp_path):
    engine = make_engine(fail_snapshots=1)
    scheduler = build_scheduler(engine, scenario_config, tmp_path)

    with pytest.raises(CheckpointError):
        scheduler.run()
    assert scheduler.time.major_step == 2


def test_checkpoint_retry_recovers(make_engine, scenario_config, tmp_path):
    engine = make_engine(fail_snapshots=1)
    summary = build_scheduler(engine, scenario_config, tmp_path, retries=1).run()

    assert len(summary.checkpoints) == 2


def test_activation_not_applied(make_engine, scenario_config, tmp_path):
    engine = make_engine()
    engine.set_domain_active = lambda handle, active: None
    scheduler = build_scheduler(engine, scenario_config, tmp_path)

    with pytest.raises(ActivationError, match="fast phase"):
        scheduler.run()
    assert engine.runs == []


def test_diagnostics_failure_does_not_abort(make_engine, scenario_config, tmp_path):
    def broken(context):
        raise ZeroDivisionError("bad report")

    engine = make_engine()
    diagnostics = DiagnosticsReporter(fluid_hooks=[broken], step_hooks=[broken])
    summary = build_scheduler(engine, scenario_config, tmp_path, diagnostics).run()

    assert summary.total_solid_steps == 5
    # 5 fluid phases + 3 major steps
    assert diagnostics.failures == 8


def test_diagnostics_receive_context(make_engine, scenario_config, tmp_path):
    seen = []
    diagnostics = DiagnosticsReporter(
        fluid_hooks=[lambda ctx: seen.append(("fluid", ctx.subcycle))],
        step_hooks=[lambda ctx: seen.append(("step", ctx.time.major_step))],
    )
    build_scheduler(make_engine(), scenario_config, tmp_path, diagnostics).run()

    assert seen == [
        ("fluid", 1),
        ("fluid", 2),
        ("step", 1),
        ("fluid", 1),
        ("fluid", 2),
        ("step", 2),
        ("fluid", 1),
        ("step", 3),
    ]


def test_warns_when_step_budget_lags_iterations(make_engine, scenario_config, tmp_path, caplog):
    engine = make_engine()
    engine.iteration = 1000

    with caplog.at_level(logging.WARNING, logger="partitioned_cht.coupling.scheduler"):
        build_scheduler(engine, scenario_config, tmp_path).run()

    assert "Step budget" in caplog.text
