from setuptools import setup, find_packages


setup(
    name="memtar",
    version="0.1",
    packages=find_packages(include=["memtar", "memtar.*"]),
    description="Write POSIX ustar archives from in-memory files, byte-exact and without touching the filesystem.",
    author="vercingetorx",
    python_requires=">=3.8",
    install_requires=[],
    extras_require={
        "test": ["pytest"],
    },
    entry_points={
        "console_scripts": [
            "memtar=memtar.cli:main",
        ]
    },
)
