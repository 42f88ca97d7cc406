from logscrobbler.cli import main

raise SystemExit(main())
