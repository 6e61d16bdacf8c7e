"""
This package provides the loaders for auxiliary tools available to the code agent.

The sandbox tools themselves come from the `codeagent-tools` package and are
built per run; this package only discovers the optional documentation-lookup
tools exposed by an MCP server (Context7).
"""
