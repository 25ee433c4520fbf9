from __future__ import annotations

from setuptools import find_namespace_packages, setup

RUNTIME_REQUIREMENTS = [
    "streamlit>=1.37",
    "pretty_midi",
    "music21",
    "numpy",
    "pydub",
    "audioop-lts; python_version >= '3.13'",
    "pandas",
    "plotly",
]

TEST_REQUIREMENTS = ["pytest"]


setup(
    name="rad-progression",
    version="0.1.0",
    description="Chord-loop progression builder with a tempo-synced loop scheduler",
    python_requires=">=3.10",
    package_dir={"": "src"},
    packages=find_namespace_packages(where="src", include=["rad_progression*"], exclude=["*.__pycache__"]),
    install_requires=RUNTIME_REQUIREMENTS,
    extras_require={"test": TEST_REQUIREMENTS},
    entry_points={"console_scripts": ["rad-progression = rad_progression.cli:main"]},
)
