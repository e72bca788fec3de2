"""Device-side sample stream state and generation.

A ``SamplerState`` is the per-worker cursor into the sample space: current
pixel, current sample index, and how many 1D/2D dimensions and arrays the
current sample has consumed. Rendering kernels copy the configured state into
a thread-local variable, so each thread owns a private stream and no
synchronization is needed.

Two strategies share the state layout:

    RANDOM: every value is an independent uniform draw.
    STRATIFIED: for each dimension, the samples of a pixel cover a grid of
        x_samples * y_samples strata exactly once, visited in a per-pixel,
        per-dimension pseudo-random order and jittered within each stratum.
        2D arrays whose length is a perfect square m*m are stratified on an
        m x m grid; 1D arrays are stratified over their length.

All mutating functions take the state as ``ti.template()`` so that updates
are visible to the caller.
"""

import taichi as ti
import taichi.math as tm

from src.lumen.sampler.hashing import hash_sample, hash_to_unit_float

vec2 = tm.vec2
ivec2 = tm.ivec2

# Sampling strategies (mirrors SamplerKind on the host)
KIND_RANDOM = 0
KIND_STRATIFIED = 1

# Largest float below 1
ONE_MINUS_EPSILON = 0.99999994

# Maximum number of registered arrays of each dimensionality
MAX_SAMPLER_ARRAYS = 8

# Separate hash streams keep 1D, 2D and array values independent
STREAM_1D = 1
STREAM_2D = 2
STREAM_ARRAY_1D = 3
STREAM_ARRAY_2D = 4
STREAM_PERMUTATION = 5

ArrayLengths = ti.types.vector(MAX_SAMPLER_ARRAYS, ti.i32)


@ti.dataclass
class SamplerState:
    """Stream cursor and configuration of one sampler instance.

    Attributes:
        kind: KIND_RANDOM or KIND_STRATIFIED.
        seed: Seed mixed into every hash.
        pixel: Current pixel coordinate.
        sample_index: Index of the current sample within the pixel.
        samples_per_pixel: Number of samples taken per pixel.
        x_samples: Strata along x (stratified only).
        y_samples: Strata along y (stratified only).
        jitter: 1 to jitter within strata, 0 to use stratum centers.
        started: 0 until the first start_next_sample call of a pixel.
        dim_1d: Next 1D dimension of the current sample.
        dim_2d: Next 2D dimension of the current sample.
        array_1d_cursor: Next 1D array to hand out.
        array_2d_cursor: Next 2D array to hand out.
        n_arrays_1d: Number of registered 1D arrays.
        n_arrays_2d: Number of registered 2D arrays.
        array_1d_lengths: Registered 1D array lengths, in request order.
        array_2d_lengths: Registered 2D array lengths, in request order.
    """

    kind: ti.i32
    seed: ti.u32
    pixel: ivec2
    sample_index: ti.i32
    samples_per_pixel: ti.i32
    x_samples: ti.i32
    y_samples: ti.i32
    jitter: ti.i32
    started: ti.i32
    dim_1d: ti.i32
    dim_2d: ti.i32
    array_1d_cursor: ti.i32
    array_2d_cursor: ti.i32
    n_arrays_1d: ti.i32
    n_arrays_2d: ti.i32
    array_1d_lengths: ArrayLengths
    array_2d_lengths: ArrayLengths


@ti.dataclass
class CameraSample:
    """Values the camera model needs for one primary ray.

    Attributes:
        p_film: Film-plane position in raster coordinates.
        p_lens: Lens position in [0,1)^2.
        time: Time in [0,1).
    """

    p_film: vec2
    p_lens: vec2
    time: ti.f32


# =============================================================================
# Internal Helpers
# =============================================================================


@ti.func
def _gcd(a: ti.i32, b: ti.i32) -> ti.i32:
    x = a
    y = b
    while y != 0:
        r = x % y
        x = y
        y = r
    return x


@ti.func
def _hash(state: ti.template(), stream: ti.i32, sample_index: ti.i32, dimension: ti.i32, element: ti.i32) -> ti.u32:
    return hash_sample(
        state.seed, stream, state.pixel.x, state.pixel.y, sample_index, dimension, element
    )


@ti.func
def _uniform(state: ti.template(), stream: ti.i32, dimension: ti.i32, element: ti.i32) -> ti.f32:
    return hash_to_unit_float(_hash(state, stream, state.sample_index, dimension, element))


@ti.func
def _jitter(state: ti.template(), stream: ti.i32, dimension: ti.i32, element: ti.i32) -> ti.f32:
    value = 0.5
    if state.jitter == 1:
        value = _uniform(state, stream, dimension, element)
    return value


@ti.func
def _affine_permute(h_a: ti.u32, h_b: ti.u32, k: ti.i32, n: ti.i32) -> ti.i32:
    """Image of k under the bijection k -> (k * a + b) mod n of [0, n).

    a and b are drawn from the two hashes, with a bumped until coprime to n.
    """
    a = 1 + ti.cast(h_a % ti.cast(n, ti.u32), ti.i32)
    while _gcd(a, n) != 1:
        a += 1
    b = ti.cast(h_b % ti.cast(n, ti.u32), ti.i32)
    return (k * a + b) % n


@ti.func
def _stratum(state: ti.template(), stream: ti.i32, dimension: ti.i32) -> ti.i32:
    """Stratum visited by the current sample for one dimension.

    The permutation is drawn per pixel and dimension, so every stratum is
    used exactly once per pixel.
    """
    h_a = _hash(state, STREAM_PERMUTATION, 0, dimension, 2 * stream)
    h_b = _hash(state, STREAM_PERMUTATION, 0, dimension, 2 * stream + 1)
    n = state.samples_per_pixel
    return _affine_permute(h_a, h_b, state.sample_index % n, n)


@ti.func
def _array_cell(state: ti.template(), stream: ti.i32, handle: ti.i32, i: ti.i32, n: ti.i32) -> ti.i32:
    """Cell of [0, n) holding array element i for the current sample.

    Drawn per sample and array, so paired arrays do not share strata index
    for index.
    """
    h_a = _hash(state, STREAM_PERMUTATION, state.sample_index, handle, 2 * stream)
    h_b = _hash(state, STREAM_PERMUTATION, state.sample_index, handle, 2 * stream + 1)
    return _affine_permute(h_a, h_b, i, n)


@ti.func
def _registered_length(state: ti.template(), is_2d: ti.template(), slot: ti.i32) -> ti.i32:
    """Length registered for an array slot, or 0 for an unused slot."""
    result = 0
    for k in ti.static(range(MAX_SAMPLER_ARRAYS)):
        if k == slot:
            if ti.static(is_2d):
                result = state.array_2d_lengths[k]
            else:
                result = state.array_1d_lengths[k]
    return result


@ti.func
def _reset_cursors(state: ti.template()):
    state.dim_1d = 0
    state.dim_2d = 0
    state.array_1d_cursor = 0
    state.array_2d_cursor = 0


# =============================================================================
# Stream Operations
# =============================================================================


@ti.func
def start_pixel(state: ti.template(), pixel: ivec2):
    """Begin a new pixel: select sample 0 and reset all cursors."""
    state.pixel = pixel
    state.sample_index = 0
    state.started = 0
    _reset_cursors(state)


@ti.func
def start_next_sample(state: ti.template()) -> ti.i32:
    """Advance to the next sample of the current pixel.

    The first call after start_pixel selects sample 0, so the loop
    ``while start_next_sample(state)`` visits every sample exactly once.

    Returns:
        1 while the selected sample index is below samples_per_pixel,
        0 once the pixel is exhausted.
    """
    if state.started == 0:
        state.started = 1
    else:
        state.sample_index += 1
    _reset_cursors(state)
    return state.sample_index < state.samples_per_pixel


@ti.func
def set_sample_index(state: ti.template(), sample_index: ti.i32) -> ti.i32:
    """Jump to a given sample of the current pixel."""
    state.sample_index = sample_index
    state.started = 1
    _reset_cursors(state)
    return sample_index < state.samples_per_pixel


@ti.func
def next_1d(state: ti.template()) -> ti.f32:
    """Return the next 1D value of the current sample, in [0, 1)."""
    dim = state.dim_1d
    state.dim_1d += 1
    value = 0.0
    if state.kind == KIND_STRATIFIED:
        k = _stratum(state, STREAM_1D, dim)
        value = (k + _jitter(state, STREAM_1D, dim, 0)) / state.samples_per_pixel
    else:
        value = _uniform(state, STREAM_1D, dim, 0)
    return ti.min(value, ONE_MINUS_EPSILON)


@ti.func
def next_2d(state: ti.template()) -> vec2:
    """Return the next 2D value of the current sample, in [0, 1)^2."""
    dim = state.dim_2d
    state.dim_2d += 1
    value = vec2(0.0, 0.0)
    if state.kind == KIND_STRATIFIED:
        k = _stratum(state, STREAM_2D, dim)
        kx = k % state.x_samples
        ky = k // state.x_samples
        value = vec2(
            (kx + _jitter(state, STREAM_2D, dim, 0)) / state.x_samples,
            (ky + _jitter(state, STREAM_2D, dim, 1)) / state.y_samples,
        )
    else:
        value = vec2(_uniform(state, STREAM_2D, dim, 0), _uniform(state, STREAM_2D, dim, 1))
    return ti.min(value, vec2(ONE_MINUS_EPSILON, ONE_MINUS_EPSILON))


@ti.func
def next_array_1d(state: ti.template(), n: ti.i32) -> ti.i32:
    """Claim the next registered 1D array of the current sample.

    Returns:
        A handle for array_1d_value, or -1 if the next registered array does
        not have length n (or no array is left). A -1 handle yields zeros.
    """
    slot = state.array_1d_cursor
    handle = -1
    if slot < state.n_arrays_1d:
        if _registered_length(state, False, slot) == n:
            handle = slot
            state.array_1d_cursor += 1
    return handle


@ti.func
def next_array_2d(state: ti.template(), n: ti.i32) -> ti.i32:
    """Claim the next registered 2D array of the current sample.

    Returns:
        A handle for array_2d_value, or -1 if the next registered array does
        not have length n (or no array is left). A -1 handle yields zeros.
    """
    slot = state.array_2d_cursor
    handle = -1
    if slot < state.n_arrays_2d:
        if _registered_length(state, True, slot) == n:
            handle = slot
            state.array_2d_cursor += 1
    return handle


@ti.func
def array_1d_value(state: ti.template(), handle: ti.i32, i: ti.i32) -> ti.f32:
    """Element i of a claimed 1D array."""
    value = 0.0
    if handle >= 0:
        n = _registered_length(state, False, handle)
        if state.kind == KIND_STRATIFIED:
            k = _array_cell(state, STREAM_ARRAY_1D, handle, i, n)
            value = (k + _jitter(state, STREAM_ARRAY_1D, handle, i)) / n
        else:
            value = _uniform(state, STREAM_ARRAY_1D, handle, i)
    return ti.min(value, ONE_MINUS_EPSILON)


@ti.func
def array_2d_value(state: ti.template(), handle: ti.i32, i: ti.i32) -> vec2:
    """Element i of a claimed 2D array."""
    value = vec2(0.0, 0.0)
    if handle >= 0:
        n = _registered_length(state, True, handle)
        m = ti.cast(ti.sqrt(ti.cast(n, ti.f32)) + 0.5, ti.i32)
        if state.kind == KIND_STRATIFIED and m * m == n:
            k = _array_cell(state, STREAM_ARRAY_2D, handle, i, n)
            value = vec2(
                (k % m + _jitter(state, STREAM_ARRAY_2D, handle, 2 * i)) / m,
                (k // m + _jitter(state, STREAM_ARRAY_2D, handle, 2 * i + 1)) / m,
            )
        else:
            value = vec2(
                _uniform(state, STREAM_ARRAY_2D, handle, 2 * i),
                _uniform(state, STREAM_ARRAY_2D, handle, 2 * i + 1),
            )
    return ti.min(value, vec2(ONE_MINUS_EPSILON, ONE_MINUS_EPSILON))


@ti.func
def get_camera_sample(state: ti.template(), p_raster: ivec2) -> CameraSample:
    """Draw film jitter, time and lens position from the stream.

    Consumes, in order, one 2D value (film), one 1D value (time) and one 2D
    value (lens), keeping the same cursor bookkeeping as every other draw.
    """
    p_film = ti.cast(p_raster, ti.f32) + next_2d(state)
    time = next_1d(state)
    p_lens = next_2d(state)
    return CameraSample(p_film=p_film, p_lens=p_lens, time=time)
