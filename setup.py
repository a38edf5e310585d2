"""Setup configuration for Storefront RAG."""

from setuptools import setup, find_packages

setup(
    name='storefront-rag',
    version='1.0.0',
    description='Retrieval-augmented chat pipeline for an e-commerce storefront',
    author='Your Name',
    packages=find_packages(exclude=['tests', 'tests.*']),
    python_requires='>=3.9',
    install_requires=[
        'python-dotenv>=1.0.0',
        'PyYAML>=6.0',
        'click>=8.1.7',
        'tiktoken>=0.5.0',
        'sentence-transformers>=2.2.2',
        'PyPDF2>=3.0.1',
        'chromadb>=0.4.22',
        'requests>=2.31.0',
    ],
    extras_require={
        'llm': ['llama-cpp-python>=0.2.27'],
        'test': ['pytest>=7.4'],
    },
)
