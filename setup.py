from pathlib import Path
from setuptools import setup, find_packages


def read_readme() -> str:
    readme_path = Path(__file__).resolve().parent / "README.md"
    return readme_path.read_text(encoding="utf-8") if readme_path.exists() else ""


setup(
    name="jsonseal",
    version="0.2.0",
    packages=find_packages(include=["jsonseal", "jsonseal.*"]),
    install_requires=[
        "cryptography>=47.0.0",
    ],
    python_requires=">=3.10",
    entry_points={
        "console_scripts": [
            "jsonseal=jsonseal.main:main",
        ],
    },
    description="Encrypted JSON serializer for document stores",
    long_description=read_readme(),
    long_description_content_type="text/markdown",
)
