"""
Benchmark harness for S3-compatible storage servers.

The package builds and supervises a local storage server, drives timed object
operations against it through the ``aws`` command-line client and summarises
latency, throughput and success rates per operation kind.
"""
