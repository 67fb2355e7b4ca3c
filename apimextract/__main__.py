from apimextract.cli import main

main()
