from setuptools import setup, find_packages


def readme():
    with open('README.md') as f:
        return f.read()


setup(
    name='ppstats',
    version='0.1',
    description='Statistical analysis of planar point patterns',
    long_description=readme(),
    long_description_content_type='text/markdown',
    author='Daniel Wennberg',
    author_email='daniel.wennberg@gmail.com',
    license='Apache 2.0',
    packages=find_packages(exclude=['tests']),
    python_requires='>=3.9',
    install_requires=[
        'numpy',
        'scipy',
        'pandas',
        'scikit-learn',
        'shapely>=2.0',
        'statsmodels',
        'joblib',
    ],
    extras_require={
        'test': ['pytest'],
    },
)
