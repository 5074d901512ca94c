from procwatch.dashboard import main

main()
