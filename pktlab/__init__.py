"""Aho-Corasick trie nodes with streaming replacement, packet printing and BPF helper utilities."""

__version__ = "0.1.0"
__all__ = ["actypes", "node", "replace", "print2", "bpf_helpers", "vm_helpers"]