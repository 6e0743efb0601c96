from reportdash_mcp.proxy import main

if __name__ == "__main__":
    main()
