from pathlib import Path

from setuptools import find_namespace_packages, setup

ROOT = Path(__file__).parent

# Read requirements (ignore comments and recursive -r entries)
req_path = ROOT / "requirements.txt"
requirements = []
if req_path.exists():
    for line in req_path.read_text(encoding="utf-8").splitlines():
        line = line.strip()
        if not line or line.startswith("#") or line.startswith("-r"):
            continue
        requirements.append(line)

readme = (ROOT / "README.md").read_text(encoding="utf-8") if (ROOT / "README.md").exists() else ""

setup(
    name="blightwatch-cri-engine",
    version="1.0.0",
    description="Tomato blight Cumulative Risk Index engine for farm advisory",
    long_description=readme,
    long_description_content_type="text/markdown",
    # blueprint and service subpackages are namespace packages (no __init__.py)
    packages=find_namespace_packages(include=("app", "app.*", "infrastructure", "infrastructure.*")),
    py_modules=["blightwatch_app"],
    python_requires=">=3.10,<4",
    install_requires=requirements,
    extras_require={
        "dev": [
            "pytest>=7.4.0",
            "pytest-cov>=4.1.0",
        ],
    },
    classifiers=[
        "Development Status :: 4 - Beta",
        "Intended Audience :: Developers",
        "Topic :: Scientific/Engineering",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Operating System :: OS Independent",
    ],
    keywords="agriculture blight tomato risk-index weather advisory",
    entry_points={
        "console_scripts": [
            "blightwatch-backend=blightwatch_app:main",
        ]
    },
)
