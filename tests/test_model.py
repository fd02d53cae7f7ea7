"""Integration tests for the simulation driver and headless runs."""

from dataclasses import replace

import numpy as np
import pytest

from crossover_sim.config import default_config
from crossover_sim.model import SimResult, Simulation, run_simulation
from crossover_sim.perf import PerfMonitor
from crossover_sim.types import Group


def make_config(seed=42, max_population=None, **params):
    cfg = default_config()
    cfg = replace(
        cfg,
        simulation=replace(cfg.simulation, seed=seed),
        params=replace(cfg.params, **params),
    )
    if max_population is not None:
        cfg = replace(cfg, world=replace(cfg.world, max_population=max_population))
    return cfg


def active_count(agents, group):
    return int(((agents['group'] == group) & ~agents['dying']).sum())


# ═══════════════════════════════════════════════════════════════════════
# SCENARIOS
# ═══════════════════════════════════════════════════════════════════════

class TestScenarios:
    def test_closed_border_holds_outsider_pool(self):
        cfg = make_config(
            legal_acceptance_rate=0, illegal_success_rate=0,
            tfr_native=0, tfr_legal=0, tfr_illegal=0,
            initial_natives=100, initial_outsiders=50, time_speed=10.0,
        )
        sim = Simulation(cfg)
        for _ in range(200):
            sim.step(0.1)
            assert active_count(sim.agents, Group.OUTSIDER) == 50
            stats = sim.current_stats()
            assert stats.total_inside <= 100
            assert stats.count_legal == 0
            assert stats.count_illegal == 0
        # 200 simulated years: every initial native has died
        assert sim.current_stats().count_native == 0

    def test_certain_admission_single_step(self):
        cfg = make_config(
            legal_acceptance_rate=100, illegal_success_rate=0,
            tfr_native=0, tfr_legal=0, tfr_illegal=0,
            initial_natives=0, initial_outsiders=100, time_speed=1.0,
        )
        sim = Simulation(cfg)
        report = sim.step(1.0)
        assert report.legal_admissions == 100
        assert report.replenished == 100

        stats = sim.current_stats()
        assert stats.count_legal == 100
        assert stats.total_inside == 100
        assert stats.percent_native == 0.0
        assert stats.minority_year == 1

    def test_legal_entrants_placed_at_entry_line(self):
        cfg = make_config(
            legal_acceptance_rate=100, illegal_success_rate=0,
            initial_natives=0, initial_outsiders=20,
        )
        sim = Simulation(cfg)
        sim.step(1.0)
        legal = sim.agents[sim.agents['group'] == Group.LEGAL_IMMIGRANT]
        assert len(legal) == 20
        np.testing.assert_allclose(legal['x'], cfg.world.inside_min_x + 1.0)


# ═══════════════════════════════════════════════════════════════════════
# INVARIANTS
# ═══════════════════════════════════════════════════════════════════════

class TestInvariants:
    def test_capacity_and_field_ranges(self):
        cfg = make_config(
            max_population=300, tfr_native=20, tfr_legal=20, tfr_illegal=20,
            legal_acceptance_rate=50, illegal_success_rate=50,
            initial_natives=150, initial_outsiders=100, time_speed=5.0,
        )
        sim = Simulation(cfg)
        peak = 0
        for _ in range(300):
            sim.step(0.05)
            a = sim.agents
            peak = max(peak, len(a))
            assert len(a) <= 300
            assert (a['scale'] >= 0.0).all()
            assert (a['scale'] <= 1.0).all()
            assert (a['age'] >= 0.0).all()
            assert (a['lifespan'] >= 1.0).all()
            assert (a['lifespan'] <= 100.0).all()
        assert peak == 300

    def test_live_agents_not_dying_have_valid_scale(self):
        sim = Simulation(make_config(time_speed=20.0))
        for _ in range(120):
            sim.step(1 / 60)
            a = sim.agents
            live = ~a['dying']
            assert (a['scale'][live] >= 0.0).all()
            assert (a['scale'][live] <= 1.0).all()

    def test_ids_unique(self):
        sim = Simulation(make_config(time_speed=10.0))
        for _ in range(200):
            sim.step(0.05)
        ids = sim.agents['id']
        assert len(np.unique(ids)) == len(ids)
        assert (np.diff(ids) > 0).all()

    def test_group_transitions_one_way(self):
        sim = Simulation(make_config(
            legal_acceptance_rate=40, illegal_success_rate=40, time_speed=5.0,
        ))
        previous = dict(zip(sim.agents['id'].tolist(), sim.agents['group'].tolist()))
        for _ in range(100):
            sim.step(0.05)
            current = dict(zip(sim.agents['id'].tolist(), sim.agents['group'].tolist()))
            for agent_id, group in current.items():
                before = previous.get(agent_id)
                if before is None or before == group:
                    continue
                assert before == Group.OUTSIDER
                assert group in (Group.LEGAL_IMMIGRANT, Group.ILLEGAL_IMMIGRANT)
            previous = current

    def test_zero_speed_freezes_demography(self):
        sim = Simulation(make_config(time_speed=0.0))
        ages = sim.agents['age'].copy()
        groups = sim.agents['group'].copy()
        for _ in range(30):
            report = sim.step(0.1)
            assert report.births == 0
            assert report.legal_admissions == 0
        np.testing.assert_array_equal(sim.agents['age'], ages)
        np.testing.assert_array_equal(sim.agents['group'], groups)
        assert sim.elapsed_years == 0.0

    def test_out_of_range_demography_rejected(self):
        cfg = default_config()
        cfg = replace(cfg, demography=replace(
            cfg.demography,
            lifespan_mean=140.0, lifespan_max=150.0,
            lifespan_min=0.0, initial_age_max=-10.0,
        ))
        with pytest.raises(ValueError):
            Simulation(cfg)

    def test_negative_delta_rejected(self):
        sim = Simulation(make_config())
        with pytest.raises(ValueError):
            sim.step(-0.1)


# ═══════════════════════════════════════════════════════════════════════
# CONTROL
# ═══════════════════════════════════════════════════════════════════════

class TestControl:
    def test_pause_freezes_state(self):
        sim = Simulation(make_config())
        sim.frame(0.1)
        sim.pause()
        assert sim.paused
        before = sim.agents.tobytes()
        years = sim.elapsed_years
        for _ in range(10):
            assert sim.frame(0.5) is None
        assert sim.agents.tobytes() == before
        assert sim.elapsed_years == years

    def test_resume(self):
        sim = Simulation(make_config())
        sim.pause()
        sim.resume()
        sim.frame(0.1)
        assert sim.elapsed_years == pytest.approx(0.1)

    def test_stats_every_frame_when_delta_exceeds_interval(self):
        sim = Simulation(make_config())
        for _ in range(5):
            assert sim.frame(0.25) is not None

    def test_stats_every_other_frame(self):
        sim = Simulation(make_config())
        results = [sim.frame(0.15) for _ in range(6)]
        assert [r is not None for r in results] == [False, True] * 3

    def test_update_params_next_step(self):
        sim = Simulation(make_config(
            legal_acceptance_rate=0, illegal_success_rate=0,
            initial_natives=10, initial_outsiders=30,
        ))
        assert sim.step(1.0).legal_admissions == 0
        sim.update_params(legal_acceptance_rate=100)
        assert sim.params.legal_acceptance_rate == 100
        assert sim.step(1.0).legal_admissions == 30

    def test_update_params_leaves_config(self):
        cfg = make_config()
        sim = Simulation(cfg)
        sim.update_params(tfr_native=5.0)
        assert cfg.params.tfr_native == 1.5

    def test_update_params_unknown_name(self):
        sim = Simulation(make_config())
        with pytest.raises(TypeError):
            sim.update_params(no_such_param=1)

    def test_reset_restores_initial_state(self):
        sim = Simulation(make_config(
            legal_acceptance_rate=100, initial_natives=0, initial_outsiders=40,
        ))
        sim.step(1.0)
        assert sim.current_stats().minority_year == 1
        sim.reset()
        assert sim.elapsed_years == 0.0
        assert sim.aggregator.minority_year is None
        assert len(sim.agents) == 40
        np.testing.assert_array_equal(sim.agents['id'], np.arange(1, 41))
        assert (sim.agents['group'] == Group.OUTSIDER).all()
        assert (sim.agents['scale'] == 1.0).all()

    def test_reset_uses_current_params(self):
        sim = Simulation(make_config(initial_natives=100, initial_outsiders=100))
        sim.update_params(initial_natives=20, initial_outsiders=5)
        sim.reset()
        stats = sim.current_stats()
        assert stats.count_native == 20
        assert stats.count_outsider == 5

    def test_reset_with_seed_is_reproducible(self):
        a = Simulation(make_config(seed=1))
        b = Simulation(make_config(seed=2))
        a.reset(seed=7)
        b.reset(seed=7)
        assert a.agents.tobytes() == b.agents.tobytes()

    def test_reset_refused_mid_step(self):
        sim = Simulation(make_config())
        sim._stepping = True
        with pytest.raises(RuntimeError):
            sim.reset()


# ═══════════════════════════════════════════════════════════════════════
# HEADLESS RUNS
# ═══════════════════════════════════════════════════════════════════════

class TestRunSimulation:
    def test_result_shape(self):
        result = run_simulation(make_config(), n_frames=60, frame_delta=0.25)
        assert isinstance(result, SimResult)
        assert result.n_frames == 60
        # Initial snapshot plus one per frame (0.25 > stats interval)
        assert len(result.snapshots) == 61
        assert result.elapsed_years.shape == (61,)
        assert result.elapsed_years[0] == 0.0
        assert result.final_stats.elapsed_years == pytest.approx(15.0)
        assert result.peak_population >= 200

    def test_deterministic(self):
        cfg = make_config(seed=123, time_speed=5.0)
        r1 = run_simulation(cfg, n_frames=120, frame_delta=1 / 30)
        r2 = run_simulation(cfg, n_frames=120, frame_delta=1 / 30)
        np.testing.assert_array_equal(r1.total_inside, r2.total_inside)
        np.testing.assert_array_equal(r1.percent_native, r2.percent_native)
        assert r1.total_births == r2.total_births
        assert r1.total_legal_admissions == r2.total_legal_admissions

    def test_seeds_differ(self):
        a = Simulation(make_config(seed=1))
        b = Simulation(make_config(seed=2))
        assert not np.array_equal(a.agents['x'], b.agents['x'])

    def test_totals_accumulate(self):
        result = run_simulation(
            make_config(time_speed=10.0), n_frames=30, frame_delta=0.1,
        )
        assert result.total_legal_admissions > 0
        assert result.total_illegal_admissions > 0
        assert result.total_births > 0
        assert result.total_replenished > 0

    def test_minority_year_reported(self):
        cfg = make_config(
            legal_acceptance_rate=100, illegal_success_rate=0,
            initial_natives=10, initial_outsiders=100, time_speed=1.0,
        )
        # p_legal = 0.5 on the single frame; the snapshot lands at 0.5 years
        result = run_simulation(cfg, n_frames=1, frame_delta=0.5)
        assert result.minority_year == 0
        assert result.final_stats.minority_year == 0

    def test_perf_components(self):
        perf = PerfMonitor(enabled=True)
        run_simulation(make_config(), n_frames=20, frame_delta=0.25, perf=perf)
        stats = perf.get_stats()
        for name in ("animation", "movement", "aging", "birth",
                     "immigration", "regulator"):
            assert stats[name].calls == 20
        # initial + one per frame + final
        assert stats["stats"].calls == 22


# ═══════════════════════════════════════════════════════════════════════
# PRESENTATION
# ═══════════════════════════════════════════════════════════════════════

class TestInstanceBuffers:
    def test_pool_sized_to_capacity(self):
        sim = Simulation(make_config(max_population=500))
        pos, scale, color = sim.instance_buffers()
        assert pos.shape == (500, 3)
        assert scale.shape == (500,)
        n = len(sim.agents)
        np.testing.assert_allclose(pos[:n, 0], sim.agents['x'], rtol=1e-6)
        assert (scale[n:] == 0.0).all()

    def test_agent_size_from_world(self):
        cfg = make_config(max_population=400)
        cfg = replace(cfg, world=replace(cfg.world, agent_size=0.5))
        pos, _, _ = Simulation(cfg).instance_buffers()
        n = 200
        np.testing.assert_allclose(pos[:n, 1], 0.25)
