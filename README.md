# liltrace

Building blocks for physically based rendering in Python: hemisphere and
sphere sampling warps, rays, cameras, textures, lights, simple geometry, and
a set of BRDF models ranging from the Lambertian model to shape-invariant
microfacet models (GGX, Beckmann) and micrograin models for porous surfaces.
A statistical checker tells whether a BRDF conserves energy and whether its
sampling routine agrees with its pdf.

## Installation

```
pip install .
```

To run the tests:

```
pip install .[test]
pytest
```

## Modules

- `liltrace.common`: `Ray`, `RandomSampler` (`next_float`, `seed`),
  the `Serializable` base class, vector helpers (`normalize`, `reflect`,
  `orthonormal_basis`, `build_tbn_from_w`), `linspace`, `polar_to_card`,
  sampling warps with their densities (`square_to_uniform_sphere`,
  `square_to_uniform_hemisphere`, `square_to_cosine_hemisphere` and the
  matching `*_pdf` functions), `fresnel_conductor`, `binary_search`, and the
  chi-square helpers `igf`, `approx_gamma` and `chisqr`.
- `liltrace.texture`: `Texture`, a `w` x `h` grid of scalars or vectors with
  `get`, `set` and nearest-texel `eval(u, v)`; out-of-range texels raise
  `IndexError`.
- `liltrace.brdf`: `Brdf`, `BrdfFlags`, `BrdfSample`, and the models
  `Diffuse`, `Emissive`, `Mix` and `TestBrdf`.
- `liltrace.shape_invariant`: `ShapeInvariantMicrosurface`,
  `RoughShapeInvariantMicrosurface` (conductor Fresnel, specular microfacets)
  and `DiffuseShapeInvariantMicrosurface` (Lambertian microfacets), each
  stretching a unit-roughness microsurface by `scale`.
- `liltrace.ggx`: `SphereMicrosurface`, `RoughGGX`, `RoughGGXRetro`,
  `DiffuseGGX`.
- `liltrace.beckmann`: `BeckmannMicrosurface`, `RoughBeckmann`.
- `liltrace.micrograin`: `MicrograinMicrosurface`, `RoughMicrograin`,
  `DiffuseMicrograin`; grains with filling factor `tau_0` over a `base`
  BRDF (a `Diffuse` by default).
- `liltrace.camera`: `PerspectiveCamera` and `GonioCamera`, whose
  `generate_ray(u, v)` maps image-plane coordinates in [-1, 1] to a `Ray`.
- `liltrace.geometry`: `Mesh`, loaded from an OBJ file by `init()` (faces
  are fan-triangulated, vertices with the same position and normal are
  shared), and `Sphere`; both give surface normals with `get_normal`.
- `liltrace.light`: `LightFlags`, `LightSample`, `DirectionnalLight`,
  `EnvironmentLight` (an importance-sampled latitude-longitude RGB
  `Texture` with `channels=3`; call `init()` before sampling) and
  `SphereLight` (samples the cone subtended by an emissive `Sphere`).
- `liltrace.validation`: `BrdfValidation.validate(brdf, sampler)`, which
  for each of `number_of_theta` incident angles estimates the directional
  albedo from `number_of_sample` samples and computes a chi-square p-value
  comparing the sampled directions with the BRDF's pdf.

Directions are given in the local shading frame, with the surface normal
along +z. `eval` returns the BRDF multiplied by the outgoing cosine, and
`sample` returns a `BrdfSample` holding an outgoing direction `wo` and the
weight `value = eval / pdf`.

## Example

```python
from liltrace.common import RandomSampler
from liltrace.ggx import RoughGGX

sampler = RandomSampler(seed=1)
brdf = RoughGGX(0.3, 0.3)

wi = (0.0, 0.0, 1.0)
sample = brdf.sample(wi, sampler)
print(sample.wo, sample.value, brdf.pdf(wi, sample.wo))
```

Checking a BRDF (this draws many samples; lower the class attributes for a
quick run):

```python
from liltrace.brdf import Diffuse
from liltrace.common import RandomSampler
from liltrace.validation import BrdfValidation

BrdfValidation.number_of_theta = 4
BrdfValidation.number_of_sample = 2000
result = BrdfValidation.validate(Diffuse(0.5), RandomSampler(seed=7))
print(result.energy_conservative, result.directional_albedo)
```

## What it does not do

The package provides the parts of a renderer, not a renderer. It has no
ray-scene intersection, no integrator that traces paths through a scene, no
image buffer to accumulate pixel samples, no way to build objects from
their type names, no scene file loading and no command-line program. Images
are neither produced nor written to disk.