from buddhabrot.cli import main

raise SystemExit(main())
