from setuptools import setup, find_packages

setup(
    name="condor",
    version="0.1.0",
    packages=find_packages(include=["condor", "condor.*"]),
    install_requires=[
        "ffmpeg-python",
        "rich>=13.0.0",  # Explicit minimum version
        "scenedetect[opencv]",
        "psutil",
        "numpy",
        "scipy",
    ],
    extras_require={
        "test": ["pytest"],
    },
    entry_points={
        "console_scripts": [
            "condor=condor.__main__:main",
        ],
    },
    python_requires=">=3.9",
)
