"""WebCNC: control plane for a fleet of networked CNC machines.

Machines keep a WebSocket open to the server and identify themselves with a
``register`` frame; operators push commands to a machine over HTTP.

Quickstart::

    uvicorn webcnc.server:app --host 0.0.0.0 --port 3000
    python -m webcnc.agent --server ws://localhost:3000/ws --uuid cnc-01
"""

__version__ = "1.0.0"
