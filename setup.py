"""Setup script for vergeos-mcp-server package."""
from pathlib import Path
from setuptools import setup, find_packages

# Read long description from README
readme_file = Path(__file__).parent / "README.md"
long_description = readme_file.read_text(encoding="utf-8") if readme_file.exists() else ""

setup(
    name="vergeos-mcp-server",
    version="1.0.0",
    description="Typed VergeOS REST client and MCP server",
    packages=find_packages(exclude=["tests*"]),
    python_requires=">=3.10",
    install_requires=[
        "httpx>=0.27",
        "pydantic>=2.5",
        "python-dotenv>=1.0",
        "mcp>=1.2,<2",
        "uvicorn>=0.29",
    ],
    extras_require={
        "test": [
            "pytest>=8.0",
            "pytest-asyncio>=0.23",
        ],
    },
    entry_points={
        "console_scripts": [
            "vergeos-mcp-server=vergeos_mcp.__main__:main",
        ],
    },
    long_description=long_description,
    long_description_content_type="text/markdown",
)
