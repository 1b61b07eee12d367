from setuptools import setup, find_packages

setup(
    name="clinic-booking-engine",
    version="1.0.0",
    package_dir={"": "src"},
    packages=find_packages(where="src"),
    install_requires=[
        "pandas>=2.1.0",
        "sqlalchemy>=2.0.19",
        "psycopg2-binary>=2.9.6",
        "python-dotenv>=1.0.0",
        "APScheduler>=3.10,<4",
    ],
    extras_require={
        "test": ["pytest>=8.0.0"],
    },
    python_requires=">=3.10",
)
