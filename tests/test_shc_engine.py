import numpy as np
import pytest

from shckit.groups import Grouping, GroupRegistry
from shckit.io import load_shc
from shckit.shc import FLUX_ROWS, SHCAccumulator, SHCConfig, SHCEngine, run_shc


def _virial(flux: np.ndarray, direction: str = "x") -> np.ndarray:
    """Embed (3, N) flux rows into a (9, N) virial for ``direction``."""
    virial = np.zeros((9, flux.shape[1]))
    virial[list(FLUX_ROWS[direction])] = flux
    return virial


def _random_frames(rng, n_frames: int, n_particles: int):
    return [(rng.normal(size=(3, n_particles)), rng.normal(size=(9, n_particles))) for _ in range(n_frames)]


def _reference_sums(vel: np.ndarray, flux: np.ndarray, nc: int):
    """Direct lag sums. vel, flux: (S, 3, G) sampled history."""
    out = {name: np.zeros(nc) for name in ("ki_negative", "ko_negative", "ki_positive", "ko_positive")}
    n_origins = 0
    for s in range(nc - 1, len(vel)):
        n_origins += 1
        for lag in range(nc):
            p = s - lag
            out["ki_positive"][lag] += np.sum(flux[s, 0] * vel[p, 0] + flux[s, 1] * vel[p, 1])
            out["ko_positive"][lag] += np.sum(flux[s, 2] * vel[p, 2])
            out["ki_negative"][lag] += np.sum(vel[s, 0] * flux[p, 0] + vel[s, 1] * flux[p, 1])
            out["ko_negative"][lag] += np.sum(vel[s, 2] * flux[p, 2])
    return out, n_origins


def test_constant_fields_give_constant_in_plane_and_zero_out_of_plane():
    nc = 100
    velocity = np.zeros((3, 2))
    velocity[0] = 1.0
    flux = np.zeros((3, 2))
    flux[0] = 1.0
    frames = [(velocity, _virial(flux)) for _ in range(nc + 20)]

    result = run_shc(frames, SHCConfig(sample_interval=1, num_correlation_steps=nc))

    assert result.num_time_origins == 21
    np.testing.assert_allclose(result.ki_positive, 2.0)
    np.testing.assert_allclose(result.ki_negative, 2.0)
    assert np.all(result.ko_positive == 0.0)
    assert np.all(result.ko_negative == 0.0)


def test_nothing_accumulates_before_the_ring_fills(rng):
    nc = 100
    engine = SHCEngine(SHCConfig(sample_interval=1, num_correlation_steps=nc))
    engine.preprocess(4)
    frames = _random_frames(rng, nc, 4)

    for step, (v, w) in enumerate(frames[:-1]):
        engine.process(step, v, w)
    assert engine.num_time_origins == 0
    for arr in engine.accumulator.sums.values():
        assert np.all(arr == 0.0)
    with pytest.raises(ValueError, match="No time origins"):
        engine.result()

    engine.process(nc - 1, *frames[-1])
    assert engine.num_time_origins == 1


def test_engine_matches_direct_lag_sums_with_group_and_interval(rng):
    nc, interval, n_particles = 100, 3, 10
    labels = np.array([0, 1, 1, 0, 2, 1, 0, 0, 2, 0])
    groups = GroupRegistry([Grouping(np.zeros(n_particles, dtype=int)), Grouping(labels)])
    cfg = SHCConfig(
        sample_interval=interval,
        num_correlation_steps=nc,
        direction="y",
        group_method=1,
        group_id=1,
    )
    frames = _random_frames(rng, interval * (nc + 15), n_particles)

    engine = SHCEngine(cfg, block_size=4)
    engine.preprocess(n_particles, groups)
    sampled = [engine.process(step, v, w) for step, (v, w) in enumerate(frames)]
    assert sum(sampled) == nc + 15

    idx = np.array([1, 2, 5])
    rows = list(FLUX_ROWS["y"])
    vel = np.stack([v[:, idx] for v, _ in frames[::interval]])
    flux = np.stack([w[rows][:, idx] for _, w in frames[::interval]])
    expected, n_origins = _reference_sums(vel, flux, nc)

    result = engine.result()
    assert result.num_time_origins == n_origins == 16
    assert result.meta["group_size"] == 3
    for name, sums in expected.items():
        np.testing.assert_allclose(getattr(result, name), sums / n_origins, rtol=1e-10, atol=1e-12)


def test_untracked_particles_never_influence_the_result(rng):
    nc, n_particles = 100, 10
    labels = np.array([1, 0, 0, 1, 0, 0, 1, 0, 0, 0])
    groups = GroupRegistry([Grouping(labels)])
    cfg = SHCConfig(sample_interval=1, num_correlation_steps=nc, direction="z", group_method=0, group_id=1)
    tracked = labels == 1

    frames_a = _random_frames(rng, nc + 5, n_particles)
    frames_b = []
    for v, w in frames_a:
        v2, w2 = v.copy(), w.copy()
        v2[:, ~tracked] = rng.normal(size=(3, 7)) * 1e3
        w2[:, ~tracked] = np.nan
        frames_b.append((v2, w2))

    res_a = run_shc(frames_a, cfg, groups=groups)
    res_b = run_shc(frames_b, cfg, groups=groups)
    for name in ("ki_negative", "ko_negative", "ki_positive", "ko_positive"):
        np.testing.assert_array_equal(getattr(res_a, name), getattr(res_b, name))


def test_superposition_of_single_origin_engines(rng):
    nc, n_origins = 100, 4
    cfg = SHCConfig(sample_interval=1, num_correlation_steps=nc)
    frames = _random_frames(rng, nc + n_origins - 1, 3)

    full = SHCEngine(cfg)
    full.preprocess(3)
    for step, (v, w) in enumerate(frames):
        full.process(step, v, w)
    assert full.num_time_origins == n_origins

    total = SHCAccumulator(nc)
    for k in range(n_origins):
        single = SHCEngine(cfg)
        single.preprocess(3)
        for step, (v, w) in enumerate(frames[k : k + nc]):
            single.process(step, v, w)
        assert single.num_time_origins == 1
        total.merge(single.accumulator)

    assert total.num_time_origins == n_origins
    for name, arr in full.accumulator.sums.items():
        np.testing.assert_allclose(arr, total.sums[name], rtol=1e-12, atol=1e-12)


def test_engine_merge_adds_raw_sums(rng):
    cfg = SHCConfig(sample_interval=1, num_correlation_steps=100)
    a = SHCEngine(cfg)
    b = SHCEngine(cfg)
    for engine in (a, b):
        engine.preprocess(2)
        for step, (v, w) in enumerate(_random_frames(rng, 102, 2)):
            engine.process(step, v, w)
    raw_a = {k: v.copy() for k, v in a.accumulator.sums.items()}

    a.merge(b)
    assert a.num_time_origins == 6
    for name, arr in a.accumulator.sums.items():
        np.testing.assert_allclose(arr, raw_a[name] + b.accumulator.sums[name])


def test_averaging_is_idempotent(rng):
    engine = SHCEngine(SHCConfig(sample_interval=1, num_correlation_steps=100))
    engine.preprocess(3)
    for step, (v, w) in enumerate(_random_frames(rng, 110, 3)):
        engine.process(step, v, w)

    first = engine.result()
    second = engine.result()
    for name in ("ki_negative", "ko_negative", "ki_positive", "ko_positive"):
        np.testing.assert_array_equal(getattr(first, name), getattr(second, name))
    assert first.num_time_origins == second.num_time_origins == 11


def test_postprocess_writes_and_leaves_engine_inert(rng, tmp_path):
    out = tmp_path / "shc.out"
    engine = SHCEngine(SHCConfig(sample_interval=2, num_correlation_steps=100))
    engine.preprocess(2)
    for step, (v, w) in enumerate(_random_frames(rng, 204, 2)):
        engine.process(step, v, w)

    result = engine.postprocess(out)
    assert result is not None and result.num_time_origins == 3
    assert not engine.active
    assert engine.process(0, np.zeros((3, 2)), np.zeros((9, 2))) is False
    assert engine.postprocess(out) is None

    df = load_shc(out, num_correlation_steps=100)
    assert len(df) == 100
    np.testing.assert_allclose(df["ki_positive"], result.ki_positive, rtol=1e-14)

    engine.preprocess(2)
    assert engine.active and engine.num_time_origins == 0


def test_flat_axis_major_input_is_accepted():
    nc = 100
    velocity = np.array([[1.0, 2.0], [0.0, 0.0], [3.0, 0.0]])
    virial = _virial(np.array([[1.0, 1.0], [0.0, 0.0], [1.0, 1.0]]), direction="x")
    flat = run_shc([(velocity.ravel(), virial.ravel())] * nc, SHCConfig(sample_interval=1, num_correlation_steps=nc))
    rows = run_shc([(velocity, virial)] * nc, SHCConfig(sample_interval=1, num_correlation_steps=nc))
    np.testing.assert_array_equal(flat.ki_positive, rows.ki_positive)
    np.testing.assert_allclose(flat.ki_positive, 3.0)
    np.testing.assert_allclose(flat.ko_positive, 3.0)


def test_direction_selects_virial_rows():
    nc = 100
    velocity = np.ones((3, 1))
    virial = np.arange(9, dtype=float).reshape(9, 1)
    for direction, (sx, sy, sz) in FLUX_ROWS.items():
        cfg = SHCConfig(sample_interval=1, num_correlation_steps=nc, direction=direction)
        res = run_shc([(velocity, virial)] * nc, cfg)
        np.testing.assert_allclose(res.ki_positive, sx + sy)
        np.testing.assert_allclose(res.ko_positive, sz)


def test_process_before_preprocess_is_ignored():
    engine = SHCEngine(SHCConfig(sample_interval=1, num_correlation_steps=100))
    assert engine.process(0, np.zeros((3, 1)), np.zeros((9, 1))) is False
    assert engine.postprocess() is None
    with pytest.raises(RuntimeError):
        engine.result()


def test_shape_and_setup_errors():
    engine = SHCEngine(SHCConfig(sample_interval=1, num_correlation_steps=100))
    engine.preprocess(4)
    with pytest.raises(ValueError, match="velocity"):
        engine.process(0, np.zeros((3, 5)), np.zeros((9, 4)))
    with pytest.raises(ValueError, match="virial"):
        engine.process(0, np.zeros((3, 4)), np.zeros(30))
    assert engine.store.ring.count == 0

    grouped = SHCEngine(SHCConfig(sample_interval=1, num_correlation_steps=100, group_method=0, group_id=0))
    with pytest.raises(ValueError, match="GroupRegistry"):
        grouped.preprocess(4)
    with pytest.raises(ValueError, match="same number"):
        grouped.preprocess(5, GroupRegistry([Grouping([0, 0, 1, 1])]))
    assert not grouped.active

    with pytest.raises(TypeError):
        SHCEngine({"sample_interval": 1})


def test_run_shc_requires_frames():
    with pytest.raises(ValueError, match="No frames"):
        run_shc([], SHCConfig(sample_interval=1, num_correlation_steps=100))


def test_postprocess_without_time_origins_still_releases(rng, tmp_path):
    out = tmp_path / "shc.out"
    engine = SHCEngine(SHCConfig(sample_interval=1, num_correlation_steps=100))
    engine.preprocess(2)
    for step, (v, w) in enumerate(_random_frames(rng, 50, 2)):
        engine.process(step, v, w)

    with pytest.raises(ValueError, match="No time origins"):
        engine.postprocess(out)
    assert not engine.active
    assert engine.store is None and engine.accumulator is None
    assert not out.exists()
    assert engine.process(50, np.zeros((3, 2)), np.zeros((9, 2))) is False
