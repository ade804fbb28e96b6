from offerwatch.server import main

main()
