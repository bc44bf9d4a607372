from jorup.cli import main

raise SystemExit(main())
