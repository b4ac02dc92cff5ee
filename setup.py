from setuptools import setup, find_packages

setup(
    name="ad-master-renderer",
    version="0.1.0",
    description="Master render pipeline for multi-scene ad videos",
    author="Valerio Galano",
    packages=find_packages(exclude=["tests", "tests.*"]),
    install_requires=[
        "pydub>=0.25.1",
        "librosa>=0.10.0",
        "moviepy>=2.0.0",
        "pillow>=10.0.0",
        "numpy>=1.24.0",
        "pyyaml>=6.0",
    ],
    extras_require={
        "test": ["pytest>=7.0"],
    },
    python_requires=">=3.9",
    entry_points={
        "console_scripts": [
            "ad-renderer=ad_renderer.cli:main",
        ],
    },
)
