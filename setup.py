from setuptools import setup, find_packages

setup(
    name='nodectl',
    version='0.1.0',
    packages=find_packages(),
    include_package_data=True,
    install_requires=[
        'typer',
        'rich',
        'paramiko',
        'pydantic>=2',
        'pyyaml',
        'python-dotenv',
        'requests'
    ],
    extras_require={
        'test': [
            'pytest'
        ]
    },
    entry_points={
        'console_scripts': [
            'nodectl=nodectl.cli:app'
        ]
    },
    author='Your Name',
    description='A CLI to prepare, attach and decommission nodes against a managed Kubernetes control plane',
    classifiers=[
        'Programming Language :: Python :: 3',
        'Operating System :: POSIX :: Linux',
    ],
    python_requires='>=3.8',
)
