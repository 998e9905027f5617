"""
README service application package.

Exposes the package README, package info and package search tools over an
RPC-style HTTP endpoint, backed by the NuGet registry with GitHub as the
fallback README host.
"""
