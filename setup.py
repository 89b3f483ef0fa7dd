from pathlib import Path
from setuptools import setup


if __name__ == '__main__':
    setup(
            name='aiokube',
            version='0.2.0',
            description='asyncio Kubernetes API client with a schema derived model catalog',
            author='Kai Groner',
            author_email='kai@gronr.com',
            packages=sorted({
                str(py.parent).replace('/', '.')
                for py in Path('aiokube').rglob('*.py') }),
            install_requires=[
                'aiohttp>=3.8',
                # sort_keys for YAML output needs 5.1
                'pyyaml>=5.1',
            ],
            extras_require={
                'test': [
                    'pytest',
                    'pytest-asyncio',
                ],
            },
            package_data={
                'aiokube.data': ['release-*.json'],
            },
            python_requires='>=3.8',
            classifiers=[
                'License :: OSI Approved :: Apache Software License',
                'Development Status :: 3 - Alpha',
                'Programming Language :: Python :: 3',
            ])
