"""
nsrip: query target domains directly against lists of nameservers.

Resolves nameserver hostnames, then asks every resolved nameserver about every
target domain and streams the classified answers as they arrive.
"""
__version__ = "1.0.1"
