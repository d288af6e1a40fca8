"""Monte Carlo light-transport core built on Taichi.

This package estimates outgoing radiance at ray-surface intersections with:
- Scattering functions (Lambertian, microfacet Beckmann/GGX, glass, glazed)
- Point and rectangular area lights
- An importance-sampled cubemap environment
- Integrators for light sampling, BSDF sampling and MIS

Subpackages:
    core: Runtime setup, rays and vector utilities, integrators
    geometry: Sphere and quad primitives used by the scene queries
    materials: BSDF models and their dispatch
    lights: Light sources, PFM loading and the cubemap environment
    scene: Primitive storage, intersection queries and the SceneManager
"""

__version__ = "0.1.0"
