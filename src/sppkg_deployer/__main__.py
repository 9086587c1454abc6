from sppkg_deployer.cli import main

main()
