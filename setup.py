from __future__ import annotations

from setuptools import find_namespace_packages, setup

setup(
    name="directional-fields",
    version="0.1.0",
    description=(
        "Face-based directional fields on triangle meshes: tangent bundles, "
        "principal matching, singularities and combing."
    ),
    python_requires=">=3.10",
    packages=find_namespace_packages(
        include=["core*", "geometry*", "fields*", "runtime*", "directional_fields*"]
    ),
    py_modules=["main"],
    install_requires=[
        "numpy>=1.22",
        "scipy>=1.8",
        "PyYAML>=6.0",
    ],
    extras_require={
        "test": ["pytest>=7.0"],
    },
    entry_points={
        "console_scripts": [
            "directional-fields=main:main",
        ],
    },
)
