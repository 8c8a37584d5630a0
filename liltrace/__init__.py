"""Rendering building blocks: sampling, rays, cameras, textures, lights, geometry and BRDF models."""

__version__ = "0.1.0"