"""
Setup script for k10analysis package.
"""

from setuptools import setup, find_packages

setup(
    name="k10analysis",
    version="0.1.0",
    packages=find_packages(exclude=["tests", "tests.*"]),
    install_requires=[
        # Core numerical dependencies
        "numpy>=1.20.0",
        "pandas>=1.3.0",
        "scipy>=1.7.0",
        "scikit-learn>=1.0.0",

        # Charts
        "matplotlib>=3.5.0",
        "seaborn>=0.12.0",

        # Utilities
        "pyyaml>=6.0.0",
    ],
    extras_require={
        "test": [
            "pytest>=6.0.0",
        ],
    },
    entry_points={
        'console_scripts': [
            'k10analysis=k10analysis.__main__:main',
        ],
    },
    description="Cluster analysis of K10 psychological distress survey responses",
    keywords="k10, kessler, survey, clustering, pca",
    python_requires=">=3.8",
)
