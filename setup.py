from pathlib import Path

from setuptools import setup

root_dir = Path(__file__).parent
with open(root_dir / "README.md") as f:
    readme = f.read()

extras_require = {
    "dev": ["pytest", "nox", "ruff", "mypy"],
    "test": ["pytest"],
}

setup(
    name="pdfextract",
    version="0.1.0",
    packages=["pdfextract"],
    package_data={"pdfextract": ["py.typed"]},
    install_requires=[
        "charset-normalizer >= 2.0.0",
    ],
    extras_require=extras_require,
    description="PDF parser and text extractor",
    long_description=readme,
    long_description_content_type="text/markdown",
    license="MIT",
    scripts=[
        "tools/pdf2txt.py",
    ],
    keywords=[
        "pdf parser",
        "text extraction",
        "text mining",
    ],
    python_requires=">=3.10",
    classifiers=[
        "Programming Language :: Python",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Programming Language :: Python :: 3.13",
        "Programming Language :: Python :: 3 :: Only",
        "Development Status :: 3 - Alpha",
        "Environment :: Console",
        "Intended Audience :: Developers",
        "License :: OSI Approved :: MIT License",
        "Topic :: Text Processing",
    ],
)
