from concept2_mcp.mcp.server import main

main()
