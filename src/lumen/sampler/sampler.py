"""Host-side sampler: configuration, array registry and stream access.

A ``Sampler`` owns one ``SamplerState`` (a 0-d Taichi struct field) holding
its configuration and stream cursor. Rendering kernels receive
``sampler.state`` as a ``ti.template()`` argument and copy it into a
thread-local variable, giving every thread a private stream. The Python
methods below run small kernels against the same state and exist for setup,
validation and tests.

Array requests must all be registered before the first ``start_pixel`` call
and are then handed out in registration order for every sample, so that the
stratification of each pixel lines up call for call.

Example:
    >>> import taichi as ti
    >>> ti.init(arch=ti.cpu)
    >>> from src.lumen.sampler.sampler import Sampler, SamplerConfig, SamplerKind
    >>> sampler = Sampler(SamplerConfig(kind=SamplerKind.STRATIFIED, samples_per_pixel=16))
    >>> n = sampler.round_requested_count(5)   # 9 for the stratified sampler
    >>> sampler.request_array_2d(n)
    >>> sampler.start_pixel((3, 7))
    >>> while sampler.start_next_sample():
    ...     u = sampler.next_2d()
    ...     light_samples = sampler.next_array_2d(n)
"""

import math
from dataclasses import dataclass, replace
from enum import IntEnum

import numpy as np
import taichi as ti
import taichi.math as tm

from src.lumen.sampler import stream
from src.lumen.sampler.stream import MAX_SAMPLER_ARRAYS, CameraSample, SamplerState
from src.lumen.utils.console import warn

# Longest array a single request may ask for
MAX_ARRAY_LENGTH = 1024


class SamplerKind(IntEnum):
    """Sampling strategies."""

    RANDOM = stream.KIND_RANDOM
    STRATIFIED = stream.KIND_STRATIFIED


class SamplerConfigError(RuntimeError):
    """Raised when a sampler is used inconsistently with its configuration."""


@dataclass(frozen=True)
class SamplerConfig:
    """Configuration of a sampler.

    For the stratified strategy the strata grid is x_samples * y_samples. If
    only samples_per_pixel is given, a square grid is used when
    samples_per_pixel is a perfect square and a single row otherwise.

    Attributes:
        kind: Sampling strategy.
        samples_per_pixel: Number of samples per pixel (positive).
        x_samples: Strata along x (stratified only, optional).
        y_samples: Strata along y (stratified only, optional).
        jitter: Jitter samples within their strata.
        seed: Seed of the stream; any non-negative integer below 2^32.
    """

    kind: SamplerKind = SamplerKind.RANDOM
    samples_per_pixel: int = 16
    x_samples: int | None = None
    y_samples: int | None = None
    jitter: bool = True
    seed: int = 0

    def __post_init__(self) -> None:
        if self.samples_per_pixel <= 0:
            raise ValueError(f"samples_per_pixel must be positive, got {self.samples_per_pixel}")
        if not 0 <= self.seed < 2**32:
            raise ValueError(f"seed must be in [0, 2^32), got {self.seed}")
        if self.x_samples is not None or self.y_samples is not None:
            if self.x_samples is None or self.y_samples is None:
                raise ValueError("x_samples and y_samples must be given together")
            if self.x_samples <= 0 or self.y_samples <= 0:
                raise ValueError(
                    f"strata counts must be positive, got {self.x_samples}x{self.y_samples}"
                )
            if self.x_samples * self.y_samples != self.samples_per_pixel:
                raise ValueError(
                    f"x_samples * y_samples ({self.x_samples}x{self.y_samples}) must equal "
                    f"samples_per_pixel ({self.samples_per_pixel})"
                )

    def strata(self) -> tuple[int, int]:
        """The (x, y) strata grid used by the stratified strategy."""
        if self.x_samples is not None and self.y_samples is not None:
            return self.x_samples, self.y_samples
        root = math.isqrt(self.samples_per_pixel)
        if root * root == self.samples_per_pixel:
            return root, root
        return self.samples_per_pixel, 1


@dataclass
class CameraSampleValues:
    """Host-side copy of a CameraSample.

    Attributes:
        p_film: Film-plane position in raster coordinates.
        p_lens: Lens position in [0,1)^2.
        time: Time in [0,1).
    """

    p_film: tuple[float, float]
    p_lens: tuple[float, float]
    time: float


# Scratch outputs for array fetches made from Python
_array_out_1d = ti.field(dtype=ti.f32, shape=MAX_ARRAY_LENGTH)
_array_out_2d = ti.Vector.field(2, dtype=ti.f32, shape=MAX_ARRAY_LENGTH)
_array_handle = ti.field(dtype=ti.i32, shape=())
_camera_out = CameraSample.field(shape=())


# =============================================================================
# Kernels
# =============================================================================


@ti.kernel
def _start_pixel_kernel(state: ti.template(), px: ti.i32, py: ti.i32):
    s = state[None]
    stream.start_pixel(s, tm.ivec2(px, py))
    state[None] = s


@ti.kernel
def _start_next_sample_kernel(state: ti.template()) -> ti.i32:
    s = state[None]
    more = stream.start_next_sample(s)
    state[None] = s
    return more


@ti.kernel
def _set_sample_index_kernel(state: ti.template(), sample_index: ti.i32) -> ti.i32:
    s = state[None]
    valid = stream.set_sample_index(s, sample_index)
    state[None] = s
    return valid


@ti.kernel
def _next_1d_kernel(state: ti.template()) -> ti.f32:
    s = state[None]
    value = stream.next_1d(s)
    state[None] = s
    return value


@ti.kernel
def _next_2d_kernel(state: ti.template()) -> tm.vec2:
    s = state[None]
    value = stream.next_2d(s)
    state[None] = s
    return value


@ti.kernel
def _next_array_1d_kernel(state: ti.template(), n: ti.i32):
    # Single iteration keeps the whole body in one serial task
    for _ in range(1):
        s = state[None]
        handle = stream.next_array_1d(s, n)
        if handle >= 0:
            for i in range(n):
                _array_out_1d[i] = stream.array_1d_value(s, handle, i)
        _array_handle[None] = handle
        state[None] = s


@ti.kernel
def _next_array_2d_kernel(state: ti.template(), n: ti.i32):
    for _ in range(1):
        s = state[None]
        handle = stream.next_array_2d(s, n)
        if handle >= 0:
            for i in range(n):
                _array_out_2d[i] = stream.array_2d_value(s, handle, i)
        _array_handle[None] = handle
        state[None] = s


@ti.kernel
def _camera_sample_kernel(state: ti.template(), px: ti.i32, py: ti.i32):
    s = state[None]
    _camera_out[None] = stream.get_camera_sample(s, tm.ivec2(px, py))
    state[None] = s


# =============================================================================
# Sampler
# =============================================================================


class Sampler:
    """A per-worker, stateful generator of sample values.

    Attributes:
        config: The sampler configuration.
        state: The 0-d SamplerState field used by rendering kernels.
    """

    def __init__(self, config: SamplerConfig | None = None) -> None:
        """Create a sampler and upload its configuration.

        Args:
            config: Sampler configuration; defaults to SamplerConfig().
        """
        self.config = config if config is not None else SamplerConfig()
        self.state = SamplerState.field(shape=())
        self._array_1d_lengths: list[int] = []
        self._array_2d_lengths: list[int] = []
        self._sampling_started = False
        self._upload_config()

    def _upload_config(self) -> None:
        """Write configuration and array registry into the state field."""
        x_samples, y_samples = self.config.strata()
        self.state.kind[None] = int(self.config.kind)
        self.state.seed[None] = self.config.seed
        self.state.samples_per_pixel[None] = self.config.samples_per_pixel
        self.state.x_samples[None] = x_samples
        self.state.y_samples[None] = y_samples
        self.state.jitter[None] = int(self.config.jitter)
        self.state.n_arrays_1d[None] = len(self._array_1d_lengths)
        self.state.n_arrays_2d[None] = len(self._array_2d_lengths)
        self.state.array_1d_lengths[None] = _padded(self._array_1d_lengths)
        self.state.array_2d_lengths[None] = _padded(self._array_2d_lengths)

    # -------------------------------------------------------------------------
    # Configuration
    # -------------------------------------------------------------------------

    def samples_per_pixel(self) -> int:
        return self.config.samples_per_pixel

    def round_requested_count(self, count: int) -> int:
        """Round an array length up to one the strategy stratifies well.

        The stratified strategy lays 2D arrays out on a square grid, so
        lengths are rounded up to the next perfect square. The random
        strategy accepts any length.

        Args:
            count: Minimum number of values needed.

        Returns:
            The length to request.
        """
        if count <= 0:
            raise ValueError(f"array length must be positive, got {count}")
        if self.config.kind == SamplerKind.STRATIFIED:
            root = math.isqrt(count)
            if root * root < count:
                root += 1
            return root * root
        return count

    def request_array_1d(self, n: int) -> None:
        """Register a 1D array of n values needed by every sample."""
        self._register(self._array_1d_lengths, n, "1D")

    def request_array_2d(self, n: int) -> None:
        """Register a 2D array of n values needed by every sample.

        Must be called before the first start_pixel. Lengths not produced by
        round_requested_count are accepted but lose stratification.

        Raises:
            SamplerConfigError: If sampling already started or too many
                arrays are registered.
            ValueError: If n is not in [1, MAX_ARRAY_LENGTH].
        """
        if n != self.round_requested_count(n):
            warn(
                f"2D array length {n} is not stratifiable; "
                f"request round_requested_count({n}) = {self.round_requested_count(n)} instead"
            )
        self._register(self._array_2d_lengths, n, "2D")

    def _register(self, registry: list[int], n: int, label: str) -> None:
        if self._sampling_started:
            raise SamplerConfigError(
                f"{label} array of length {n} requested after sampling started; "
                "register all arrays before the first start_pixel"
            )
        if not 0 < n <= MAX_ARRAY_LENGTH:
            raise ValueError(f"array length must be in [1, {MAX_ARRAY_LENGTH}], got {n}")
        if len(registry) >= MAX_SAMPLER_ARRAYS:
            raise SamplerConfigError(f"at most {MAX_SAMPLER_ARRAYS} {label} arrays can be requested")
        registry.append(n)
        self._upload_config()

    @property
    def array_1d_lengths(self) -> tuple[int, ...]:
        return tuple(self._array_1d_lengths)

    @property
    def array_2d_lengths(self) -> tuple[int, ...]:
        return tuple(self._array_2d_lengths)

    def reseed(self, seed: int) -> None:
        """Reinitialize the stream with a new seed."""
        self.config = replace(self.config, seed=seed)
        self.state.seed[None] = seed

    def clone_for_worker(self, seed: int | None = None) -> "Sampler":
        """Create an independent sampler with the same configuration.

        The clone carries the same samples-per-pixel target and array
        registry but owns a fresh state. Values depend only on seed, pixel
        and sample index, so a clone with the same seed reproduces this
        sampler's stream for any pixel; pass a seed to decorrelate it.

        Args:
            seed: Optional seed for the clone.

        Returns:
            A new Sampler.
        """
        clone = Sampler(self.config)
        clone._array_1d_lengths = list(self._array_1d_lengths)
        clone._array_2d_lengths = list(self._array_2d_lengths)
        clone._upload_config()
        if seed is not None:
            clone.reseed(seed)
        return clone

    # -------------------------------------------------------------------------
    # Stream access
    # -------------------------------------------------------------------------

    def start_pixel(self, pixel: tuple[int, int]) -> None:
        """Begin generating samples for a pixel."""
        self._sampling_started = True
        _start_pixel_kernel(self.state, int(pixel[0]), int(pixel[1]))

    def start_next_sample(self) -> bool:
        """Advance to the next sample; False once the pixel is exhausted."""
        return bool(_start_next_sample_kernel(self.state))

    def set_sample_index(self, sample_index: int) -> bool:
        """Jump to a sample of the current pixel; False if out of range."""
        return bool(_set_sample_index_kernel(self.state, sample_index))

    def current_sample_index(self) -> int:
        return int(self.state.sample_index[None])

    def current_pixel(self) -> tuple[int, int]:
        p = self.state.pixel[None]
        return int(p[0]), int(p[1])

    def next_1d(self) -> float:
        """Next 1D value of the current sample, in [0, 1)."""
        return float(_next_1d_kernel(self.state))

    def next_2d(self) -> tuple[float, float]:
        """Next 2D value of the current sample, in [0, 1)^2."""
        v = _next_2d_kernel(self.state)
        return float(v[0]), float(v[1])

    def next_array_1d(self, n: int) -> np.ndarray:
        """Next registered 1D array of the current sample.

        Raises:
            SamplerConfigError: If the next registered 1D array does not have
                length n.
        """
        _next_array_1d_kernel(self.state, n)
        if _array_handle[None] < 0:
            raise SamplerConfigError(
                f"1D array of length {n} was not requested (registered: {self._array_1d_lengths})"
            )
        return _array_out_1d.to_numpy()[:n]

    def next_array_2d(self, n: int) -> np.ndarray:
        """Next registered 2D array of the current sample.

        Returns:
            An (n, 2) float32 array of values in [0, 1)^2.

        Raises:
            SamplerConfigError: If the next registered 2D array does not have
                length n.
        """
        _next_array_2d_kernel(self.state, n)
        if _array_handle[None] < 0:
            raise SamplerConfigError(
                f"2D array of length {n} was not requested (registered: {self._array_2d_lengths})"
            )
        return _array_out_2d.to_numpy()[:n]

    def get_camera_sample(self, raster_pixel: tuple[int, int]) -> CameraSampleValues:
        """Draw film, time and lens values for a primary ray through a pixel."""
        _camera_sample_kernel(self.state, int(raster_pixel[0]), int(raster_pixel[1]))
        p_film = _camera_out.p_film[None]
        p_lens = _camera_out.p_lens[None]
        return CameraSampleValues(
            p_film=(float(p_film[0]), float(p_film[1])),
            p_lens=(float(p_lens[0]), float(p_lens[1])),
            time=float(_camera_out.time[None]),
        )


def _padded(lengths: list[int]) -> list[int]:
    return list(lengths) + [0] * (MAX_SAMPLER_ARRAYS - len(lengths))
