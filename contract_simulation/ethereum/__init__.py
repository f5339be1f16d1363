"""Solidity compiler and web3 backend collaborators."""
