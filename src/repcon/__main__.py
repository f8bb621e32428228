from repcon.cli import main

raise SystemExit(main())
