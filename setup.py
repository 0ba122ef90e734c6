# setup.py
from setuptools import setup, find_packages

setup(
    name="site_audit",
    version="0.1.0",
    description="Асинхронный обходчик и QA-сканер сайтов SiteAudit",
    packages=find_packages(exclude=("tests", "tests.*")),
    package_data={"site_audit.report": ["templates/*.j2"]},
    install_requires=[
        "aiohttp>=3.11",
        "beautifulsoup4>=4.12",
        "click>=8.1",
        "jinja2>=3.1",
        "playwright>=1.40",
        "pydantic>=2.5",
        "PyYAML>=6.0",
    ],
    extras_require={
        "test": [
            "pytest>=7.4",
            "pytest-asyncio>=0.23",
        ],
    },
    entry_points={
        "console_scripts": ["site-audit=site_audit.cli:cli"],
    },
    python_requires=">=3.11",
)
