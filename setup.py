from setuptools import find_packages, setup


setup(
    name="living-story-tracker",
    version="0.1.0",
    description="Article change detection, entity graph and story clustering service",
    package_dir={"": "src"},
    packages=find_packages(where="src"),
    python_requires=">=3.10",
    install_requires=[
        "pydantic>=2.0.0",
        "pydantic-settings>=2.0.0",
        "httpx>=0.25.0",
        "fastapi>=0.100.0",
        "prometheus-client>=0.17.0",
        "redis>=4.5.0",
    ],
    extras_require={
        "test": ["pytest>=7.0.0"],
    },
    entry_points={
        "console_scripts": [
            "story-tracker=story_service.main:main",
        ],
    },
)
