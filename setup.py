from setuptools import setup, find_packages

setup(
    name="mdhist",
    version="0.1.0",
    description="Molecular dynamics history analysis: VACF, phonon DOS and harmonic thermodynamics",
    package_dir={"": "src"},
    packages=find_packages(where="src"),
    install_requires=[
        "numpy",
        "scipy",
        "pyyaml",
        "tqdm",
        "ase"
    ],
    extras_require={
        'test': ['pytest'],
    },
    entry_points={
        'console_scripts': [
            'mdhist=mdhist.cli:main',
        ],
    },
    python_requires=">=3.8",
)
