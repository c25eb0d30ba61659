"""
Imphash Analyzers
==================

ELF integrity guard, per-format import normalizers, digest builder and the
scratch-buffer pool they share.
"""
