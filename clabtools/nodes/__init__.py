"""Node configuration, the node kind registry and the node kinds with their container settings."""