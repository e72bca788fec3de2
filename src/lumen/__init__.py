"""Stochastic light transport core for a Taichi-based renderer.

This package provides the pieces an integrator needs to estimate direct and
indirect illumination:
- Light sources with incident-radiance and emission sampling and their pdfs
- Deferred visibility and transmittance queries between two points
- Reproducible per-pixel sample streams with stratified arrays

Subpackages:
    core: Rays, interactions, radiance helpers, warps and visibility
    geometry: Sphere and quad primitives with intersection and area sampling
    scene: Primitive storage, ray-scene queries and the host Scene
    lights: Light variants, device dispatch and host queries
    sampler: Sample streams and their host-side configuration
    utils: Shared console diagnostics
"""

__version__ = "0.1.0"
