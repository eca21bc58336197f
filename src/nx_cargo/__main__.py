from nx_cargo.cli import main

raise SystemExit(main())
