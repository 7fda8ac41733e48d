from hardhat_shield.cli import main

raise SystemExit(main())
