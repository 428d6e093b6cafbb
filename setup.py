from setuptools import find_packages, setup

setup(
    name="filewatcher",
    version="0.1.0",
    description="Directory-scoped file event routing with per-directory handlers",
    packages=find_packages(exclude=["tests", "tests.*"]),
    python_requires=">=3.8",
    install_requires=[
        "click",
        "toml",
        "pyyaml",
        "python-daemon",
        "rich",
        "psutil",
        "watchdog>=2.1",
    ],
    extras_require={
        "test": ["pytest"],
    },
    entry_points={
        "console_scripts": [
            "filewatcher=filewatcher.cli:main"
        ]
    },
)
