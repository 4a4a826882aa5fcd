from panel_client.launcher import main

raise SystemExit(main())
