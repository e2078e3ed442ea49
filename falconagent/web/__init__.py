"""HTTP routes for inspecting the host, managing plugins and controlling the agent."""