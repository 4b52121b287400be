import setuptools

setuptools.setup(
    name="tiny-mysql",
    version="0.1.0",
    description="A throwaway, directory-scoped mysql server for local development",
    packages=setuptools.find_packages(include=["tiny_mysql", "tiny_mysql.*"]),
    python_requires=">=3.9",
    install_requires=[
        "PyMySQL",
        "psutil",
        "retry",
        "typer",
    ],
    extras_require={
        "test": ["pytest"],
    },
    entry_points={
        "console_scripts": [
            "tiny-mysql = tiny_mysql.__main__:main",
        ],
    },
)
