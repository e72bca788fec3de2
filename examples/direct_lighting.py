#!/usr/bin/env python3
"""Estimate direct lighting on a floor plane and save it as an image.

This script exercises the light transport core end to end: it builds a small
scene (a floor, a sphere casting shadows, an area light, a spotlight and a
dim environment), registers one light-sample array per light with the
sampler, and estimates the irradiance arriving at each point of the floor
from every light with shadow rays.

Usage:
    python -m examples.direct_lighting [options]

Options:
    --resolution N      Output image size in pixels (default: 256)
    --samples SAMPLES   Samples per pixel (default: 16)
    --light-samples N   Light samples per light and pixel sample (default: 4)
    --sampler KIND      random or stratified (default: stratified)
    --seed SEED         Sampler seed (default: 0)
    --output OUTPUT     Output file path (default: direct_lighting.png)

Example:
    python -m examples.direct_lighting --resolution 128 --samples 4
"""

from __future__ import annotations

import argparse
import sys
import time
from pathlib import Path

import numpy as np
import taichi as ti
from PIL import Image

# Floor square spans [-FLOOR_HALF, FLOOR_HALF] in x and z
FLOOR_HALF = 2.0


def parse_args() -> argparse.Namespace:
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(
        description="Estimate direct lighting on a floor plane.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--resolution", type=int, default=256, help="Output image size (default: 256)")
    parser.add_argument("--samples", type=int, default=16, help="Samples per pixel (default: 16)")
    parser.add_argument(
        "--light-samples",
        type=int,
        default=4,
        help="Light samples per light and pixel sample (default: 4)",
    )
    parser.add_argument(
        "--sampler",
        choices=["random", "stratified"],
        default="stratified",
        help="Sampling strategy (default: stratified)",
    )
    parser.add_argument("--seed", type=int, default=0, help="Sampler seed (default: 0)")
    parser.add_argument(
        "--output",
        type=str,
        default="direct_lighting.png",
        help="Output file path (default: direct_lighting.png)",
    )
    return parser.parse_args()


def build_scene():
    """Create the demo scene."""
    from src.lumen.lights import SpotLight, UniformInfiniteLight
    from src.lumen.scene.scene import Scene

    scene = Scene()
    # Floor facing +y
    scene.add_quad((-FLOOR_HALF, 0.0, -FLOOR_HALF), (0.0, 0.0, 2 * FLOOR_HALF), (2 * FLOOR_HALF, 0.0, 0.0))
    scene.add_sphere((0.0, 0.6, 0.0), 0.6)
    # Area light facing down
    scene.add_emissive_quad((-0.5, 2.5, -0.5), (1.0, 0.0, 0.0), (0.0, 0.0, 1.0), (6.0, 6.0, 6.0))
    scene.add_light(
        SpotLight((1.5, 2.0, 1.5), (-1.0, -1.5, -1.0), (8.0, 6.0, 4.0), total_width=35.0, falloff_start=25.0)
    )
    scene.add_light(UniformInfiniteLight((0.1, 0.1, 0.15)))
    return scene


def render_direct_lighting(
    resolution: int = 256,
    samples: int = 16,
    light_samples: int = 4,
    sampler_kind: str = "stratified",
    seed: int = 0,
    output_path: str = "direct_lighting.png",
) -> Path:
    """Estimate floor irradiance and save it as a tone-mapped PNG.

    Returns:
        Path to the saved image file.
    """
    # Lazy imports to allow Taichi initialization first
    from src.lumen.core.interaction import Interaction, point_error_bound
    from src.lumen.core.spectrum import luminance
    from src.lumen.core.visibility import unoccluded
    from src.lumen.lights import dispatch
    from src.lumen.lights.light import fetch_light, is_delta, num_lights
    from src.lumen.sampler import Sampler, SamplerConfig, SamplerKind
    from src.lumen.sampler import stream
    from src.lumen.utils.console import CONSOLE

    scene = build_scene()
    scene.preprocess()

    kind = SamplerKind.STRATIFIED if sampler_kind == "stratified" else SamplerKind.RANDOM
    sampler = Sampler(SamplerConfig(kind=kind, samples_per_pixel=samples, seed=seed))
    array_len = sampler.round_requested_count(light_samples)
    for _ in scene.lights:
        sampler.request_array_2d(array_len)

    image = ti.field(dtype=ti.f32, shape=(resolution, resolution))

    @ti.kernel
    def render(state: ti.template(), n_array: ti.i32):
        for i, j in image:
            s = state[None]
            stream.start_pixel(s, ti.math.ivec2(i, j))
            total = 0.0
            more = stream.start_next_sample(s)
            while more == 1:
                jitter = stream.next_2d(s)
                x = -FLOOR_HALF + 2.0 * FLOOR_HALF * (i + jitter.x) / resolution
                z = -FLOOR_HALF + 2.0 * FLOOR_HALF * (j + jitter.y) / resolution
                p = ti.math.vec3(x, 0.0, z)
                n = ti.math.vec3(0.0, 1.0, 0.0)
                ref = Interaction(p=p, p_error=point_error_bound(p), wo=n, n=n, time=0.0)
                for l in range(num_lights[None]):
                    light = fetch_light(l)
                    handle = stream.next_array_2d(s, n_array)
                    # Delta lights give the same sample for every u
                    count = n_array
                    if is_delta(light):
                        count = 1
                    contrib = 0.0
                    for k in range(count):
                        ls = dispatch.sample_li(light, ref, stream.array_2d_value(s, handle, k))
                        if ls.pdf > 0.0 and unoccluded(ls.vis) == 1:
                            cos_theta = ti.max(ti.math.dot(ls.wi, n), 0.0)
                            contrib += luminance(ls.radiance) * cos_theta / ls.pdf
                    total += contrib / count
                more = stream.start_next_sample(s)
            image[i, j] = total / s.samples_per_pixel

    start_time = time.time()
    CONSOLE.print(f"Rendering {resolution}x{resolution}, {samples} spp, {array_len} light samples per light...")
    render(sampler.state, array_len)
    irradiance = image.to_numpy()

    # Reinhard tone mapping and gamma 2.2
    mapped = irradiance / (1.0 + irradiance)
    pixels = (np.clip(mapped, 0.0, 1.0) ** (1.0 / 2.2) * 255.0 + 0.5).astype(np.uint8)
    output_file = Path(output_path)
    Image.fromarray(np.ascontiguousarray(pixels.T[::-1])).save(output_file)

    CONSOLE.print(f"Saved to: {output_file.absolute()}")
    CONSOLE.print(f"Total time: {time.time() - start_time:.2f}s")
    return output_file


def main() -> int:
    """Main entry point."""
    args = parse_args()

    # Use GPU if available, fall back to CPU
    try:
        ti.init(arch=ti.gpu)
    except RuntimeError:
        ti.init(arch=ti.cpu)

    try:
        render_direct_lighting(
            resolution=args.resolution,
            samples=args.samples,
            light_samples=args.light_samples,
            sampler_kind=args.sampler,
            seed=args.seed,
            output_path=args.output,
        )
        return 0
    except (ValueError, RuntimeError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
